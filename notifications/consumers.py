import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

logger = logging.getLogger(__name__)

# Close codes sent to the client
CLOSE_FORBIDDEN = 4001
CLOSE_ERROR = 4000


def notification_group(user_id):
    return f"notifications_{user_id}"


class NotificationConsumer(AsyncWebsocketConsumer):
    """
    Read-only push channel for one agent.

    utils.notify sends to the agent's group; the socket only accepts an
    authenticated user subscribing to their own id.
    """
    group_name = None

    def _may_subscribe(self, user_id):
        user = self.scope.get("user")
        return bool(user and not user.is_anonymous and str(user.pk) == str(user_id))

    async def connect(self):
        user_id = self.scope["url_route"]["kwargs"]["user_id"]
        if not self._may_subscribe(user_id):
            logger.warning(f"Refused notification socket for user {user_id}")
            await self.close(code=CLOSE_FORBIDDEN)
            return

        try:
            self.group_name = notification_group(user_id)
            await self.channel_layer.group_add(self.group_name, self.channel_name)
        except Exception as e:
            logger.error(f"Could not subscribe user {user_id} to notifications: {e}")
            await self.close(code=CLOSE_ERROR)
            return

        await self.accept()

    async def disconnect(self, close_code):
        if self.group_name is None:
            return
        try:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        except Exception as e:
            logger.error(f"Could not leave {self.group_name}: {e}")

    async def receive(self, text_data=None, bytes_data=None):
        # Keep-alive only; anything else from the client is dropped
        try:
            message = json.loads(text_data or "{}")
        except json.JSONDecodeError:
            return
        if isinstance(message, dict) and message.get("type") == "ping":
            await self.send(text_data=json.dumps({"type": "pong"}))

    async def _push(self, event):
        await self.send(text_data=json.dumps(event))

    # group_send message types
    notification = _push
    payment_notification = _push
