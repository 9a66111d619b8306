from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .models import Profile
from .realtime import TABLES, profile_group


@database_sync_to_async
def _profile_for(user):
    return Profile.objects.filter(user=user).first()


class RealtimeConsumer(AsyncJsonWebsocketConsumer):
    """Pushes row-change notices for the connected user's rows.

    Clients send ``{"action": "subscribe", "table": "matches"}`` and then
    receive ``{"table": ..., "event": "INSERT|UPDATE|DELETE", "id": ...}``
    frames for the tables they subscribed to.
    """

    async def connect(self):
        user = self.scope.get('user')
        if user is None or user.is_anonymous:
            await self.close()
            return

        profile = await _profile_for(user)
        if not profile:
            await self.close()
            return

        self.tables = set()
        self.group_name = profile_group(profile.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, code):
        group_name = getattr(self, 'group_name', None)
        if group_name:
            await self.channel_layer.group_discard(group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        action = content.get('action')
        table = content.get('table')
        if table not in TABLES:
            await self.send_json({'error': f'Unknown table: {table}'})
            return
        if action == 'subscribe':
            self.tables.add(table)
        elif action == 'unsubscribe':
            self.tables.discard(table)
        else:
            await self.send_json({'error': f'Unknown action: {action}'})
            return
        await self.send_json({'status': 'ok', 'action': action, 'table': table})

    async def table_change(self, event):
        payload = event.get('data', {})
        if payload.get('table') in getattr(self, 'tables', ()):
            await self.send_json(payload)
