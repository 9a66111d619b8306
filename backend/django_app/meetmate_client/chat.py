"""Single-flight AI chat session.

Sending a new message aborts whichever reply is still streaming; the
aborted reply is dropped from the transcript instead of being shown as
an error.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .client import MeetMateClient
from .errors import MeetMateError, error_from_response
from .sse import SSEDeltaDecoder

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10
GREETING = (
    "Hi! I'm your AI networking assistant. I can help you find matches, suggest "
    'conversation topics, or schedule meetings. How can I help you today?'
)
FAILURE_REPLY = 'Sorry, I encountered an error. Please try again.'


@dataclass
class ChatMessage:
    sender: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    pending: bool = False
    error: MeetMateError | None = None

    def as_history(self) -> dict:
        return {'sender': self.sender, 'content': self.content}


class ChatSession:
    def __init__(self, client: MeetMateClient, history_limit: int = HISTORY_LIMIT):
        self.client = client
        self.history_limit = history_limit
        self.transcript: list[ChatMessage] = [ChatMessage('ai', GREETING)]
        self._inflight: asyncio.Task | None = None

    @property
    def is_typing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def send(self, content: str) -> asyncio.Task:
        """Start a reply for ``content``, superseding any reply still in flight."""
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

        history = [m.as_history() for m in self.transcript if not m.pending and m.error is None]
        history = history[-self.history_limit:]
        self.transcript.append(ChatMessage('user', content))
        self._inflight = asyncio.create_task(self._exchange(content, history))
        return self._inflight

    async def ask(self, content: str) -> str | None:
        """Send and wait; returns None when a later message superseded this one."""
        task = self.send(content)
        try:
            return await task
        except asyncio.CancelledError:
            if task is not self._inflight:
                return None
            raise

    async def _exchange(self, content: str, history: list[dict]) -> str:
        reply = ChatMessage('ai', '', pending=True)
        self.transcript.append(reply)
        try:
            async with self.client.http.stream(
                'POST',
                self.client.url('/ai-chat/'),
                headers=self.client.headers,
                json={'message': content, 'conversation_history': history},
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise error_from_response(response)

                decoder = SSEDeltaDecoder()
                async for chunk in response.aiter_bytes():
                    for delta in decoder.feed(chunk):
                        reply.content += delta
                    if decoder.done:
                        break
                for delta in decoder.close():
                    reply.content += delta
        except asyncio.CancelledError:
            self.transcript.remove(reply)
            raise
        except MeetMateError as exc:
            logger.error('AI chat error: %s', exc)
            reply.content = exc.message if exc.status_code in (402, 429) else FAILURE_REPLY
            reply.error = exc
        except Exception as exc:
            logger.exception('AI chat error')
            reply.content = FAILURE_REPLY
            reply.error = MeetMateError(str(exc))
        reply.pending = False
        return reply.content

    def clear_history(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self.transcript = [ChatMessage('ai', "Hi! I'm your AI networking assistant. How can I help you today?")]
