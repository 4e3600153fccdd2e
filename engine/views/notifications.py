from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from engine.serializers.notification import NotificationListQuerySerializer, NotificationReadSerializer
from engine.services.notifications import list_notifications, mark_read


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    q = NotificationListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, page_size = q.validated_data.get('page', 1), q.validated_data.get('pageSize', 20)
    items, total = list_notifications(
        request.user, unread_only=q.validated_data['unread'], page=page, page_size=page_size,
    )
    return Response({'ok': True, 'data': items, 'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notifications_read(request):
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    n = mark_read(request.user, s.validated_data.get('ids'))
    return Response({'ok': True, 'updated': n})
