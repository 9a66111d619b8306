import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

TABLES = (
    'matches',
    'connections',
    'conversations',
    'messages',
    'events',
    'event_attendees',
    'meetings',
    'notifications',
)


def profile_group(profile_id) -> str:
    return f'profile_{profile_id}'


def publish_change(table: str, event: str, row_id, owner_ids) -> None:
    """Tell every owner's sockets that a row in ``table`` changed.

    Frames carry no row data; subscribers re-fetch the list.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {'table': table, 'event': event, 'id': row_id}
    for owner_id in {owner for owner in owner_ids if owner is not None}:
        try:
            async_to_sync(channel_layer.group_send)(
                profile_group(owner_id),
                {'type': 'table_change', 'data': payload},
            )
        except Exception:
            logger.exception('Realtime publish failed: table=%s owner=%s', table, owner_id)
