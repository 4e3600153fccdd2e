from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from engine.permissions import IsDoctorRole
from engine.serializers.schedule import ScheduleUpsertSerializer, SerialSettingsSerializer
from engine.services import schedules as svc


@api_view(['GET', 'POST'])
@permission_classes([IsDoctorRole])
def schedules(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.list_schedules(request.user)})
    s = ScheduleUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    schedule = svc.upsert_schedule(
        request.user,
        d['chamberId'],
        d['dayOfWeek'],
        d['timeSlots'],
        valid_from=d.get('validFrom'),
        valid_until=d.get('validUntil'),
        is_active=d.get('isActive'),
    )
    return Response({'ok': True, 'data': svc.format_schedule(schedule)})


@api_view(['POST'])
@permission_classes([IsDoctorRole])
def serial_settings(request):
    s = SerialSettingsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    policy = svc.upsert_serial_settings(
        request.user,
        hospital_id=d.get('hospitalId'),
        chamber_id=d.get('chamberId'),
        total_serials_per_day=d['totalSerialsPerDay'],
        start_time=d['startTime'],
        end_time=d['endTime'],
        appointment_price=d['appointmentPrice'],
        available_days=d.get('availableDays'),
        is_active=d['isActive'],
    )
    return Response({'ok': True, 'data': svc.format_serial_settings(policy)}, status=status.HTTP_200_OK)
