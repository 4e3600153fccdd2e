"""
Best-effort notification fan-out.

``notify`` never performs I/O in the caller's transaction: dispatch is
deferred until commit, and a failure while storing or pushing the
notification is logged and dropped.  Nothing here can undo the booking or
approval transition that triggered it.
"""
import logging
from functools import partial
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import transaction

from engine.models import Notification, User

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"user.{user_id}"


def notify(recipient: Optional[User], event_type: str, title: str, message: str,
           related_id=None, related_type: Optional[str] = None) -> None:
    if recipient is None or not getattr(settings, 'ENGINE_NOTIFICATIONS_ENABLED', True):
        return
    transaction.on_commit(partial(
        dispatch, recipient.pk, event_type, title, message,
        '' if related_id is None else str(related_id), related_type or '',
    ))


def dispatch(recipient_id: int, event_type: str, title: str, message: str, related_id: str, related_type: str) -> None:
    try:
        n = Notification.objects.create(
            recipient_id=recipient_id, type=event_type, title=title, message=message,
            related_id=related_id, related_type=related_type,
        )
        channel_layer = get_channel_layer()
        if channel_layer is not None:
            async_to_sync(channel_layer.group_send)(user_group(recipient_id), {
                "type": "notification.message",
                "payload": format_notification(n),
            })
    except Exception:
        logger.exception('notification %s to user %s failed', event_type, recipient_id)


def format_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'relatedId': n.related_id,
        'relatedType': n.related_type,
        'isRead': n.is_read,
        'createdAt': n.created_at.isoformat(),
    }


def list_notifications(user: User, *, unread_only: bool = False, page: int = 1, page_size: int = 20):
    qs = Notification.objects.filter(recipient=user)
    if unread_only:
        qs = qs.filter(is_read=False)
    total = qs.count()
    page = max(1, int(page or 1))
    page_size = min(100, max(1, int(page_size or 20)))
    start = (page - 1) * page_size
    items = qs.order_by('-created_at', '-id')[start:start + page_size]
    return [format_notification(n) for n in items], total


def mark_read(user: User, ids: Optional[list] = None) -> int:
    qs = Notification.objects.filter(recipient=user, is_read=False)
    if ids:
        qs = qs.filter(id__in=ids)
    return qs.update(is_read=True)
