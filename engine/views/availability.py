from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from engine.serializers.booking import AvailabilityQuerySerializer, SerialsQuerySerializer
from engine.services.availability import get_availability, get_available_serials


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_availability(request, doctor_id: int):
    q = AvailabilityQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = get_availability(doctor_id, q.validated_data['date'], q.validated_data.get('chamberId'))
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_serials(request, doctor_id: int):
    q = SerialsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = get_available_serials(doctor_id, q.validated_data['date'], q.validated_data.get('hospitalId'))
    return Response({'ok': True, 'data': data})
