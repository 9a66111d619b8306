"""Refetch-on-notify synchronisation for cached lists."""

import logging

logger = logging.getLogger(__name__)


class RealtimeSync:
    """Re-fetches a whole list whenever its table reports a change.

    ``fetchers`` maps a table name (``matches``, ``conversations``, ...) to
    a coroutine function returning the fresh list. Deltas in the incoming
    frames are never applied locally; a refetch can therefore overwrite an
    optimistic local edit until the next notification arrives.
    """

    def __init__(self, fetchers: dict):
        self.fetchers = dict(fetchers)
        self.state: dict[str, list] = {}

    def subscribe_frames(self) -> list[dict]:
        return [{'action': 'subscribe', 'table': table} for table in self.fetchers]

    async def refresh(self, table: str) -> list:
        self.state[table] = await self.fetchers[table]()
        return self.state[table]

    async def refresh_all(self) -> None:
        for table in self.fetchers:
            await self.refresh(table)

    async def handle(self, frame: dict) -> bool:
        table = frame.get('table') if isinstance(frame, dict) else None
        if table not in self.fetchers:
            return False
        logger.debug('Realtime %s on %s, refetching', frame.get('event'), table)
        await self.refresh(table)
        return True

    async def run(self, frames) -> None:
        """Consume an async iterable of change frames until it ends."""
        async for frame in frames:
            await self.handle(frame)
