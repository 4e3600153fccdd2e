import json

from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from engine.services.notifications import user_group


class NotificationConsumer(AsyncWebsocketConsumer):
    """Pushes the caller's notifications as they are stored.

    Each user listens on their own group ``user.<id>``; the notification
    dispatcher sends ``notification.message`` events to it.
    """

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4003)
            return
        self.group_name = user_group(user.pk)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def notification_message(self, event):
        # event: {"type": "notification.message", "payload": {...}}
        await self.send(json.dumps({"type": "notification", "data": event["payload"]}))
