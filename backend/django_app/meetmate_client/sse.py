"""Incremental decoder for the chat relay's ``text/event-stream`` body."""

import codecs
import json

DATA_PREFIX = 'data: '
DONE_MARKER = '[DONE]'


class SSEDeltaDecoder:
    """Turns arbitrarily split response bytes into content deltas.

    Bytes are decoded incrementally (a UTF-8 sequence may straddle two
    chunks) and only complete lines are interpreted; whatever follows the
    last newline is carried over to the next ``feed`` call.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder('utf-8')()
        self._buffer = ''
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def close(self) -> list[str]:
        """Flush a final line that arrived without a trailing newline."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b'', final=True)
        if self._buffer and not self._buffer.endswith('\n'):
            self._buffer += '\n'
        return self._drain()

    def _drain(self) -> list[str]:
        deltas = []
        while not self.done:
            newline = self._buffer.find('\n')
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            if line.endswith('\r'):
                line = line[:-1]
            if not line.strip() or line.startswith(':') or not line.startswith(DATA_PREFIX):
                continue

            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_MARKER:
                self.done = True
                break
            try:
                frame = json.loads(payload)
            except ValueError:
                continue
            delta = _delta_content(frame)
            if delta:
                deltas.append(delta)
        return deltas


def _delta_content(frame) -> str:
    if not isinstance(frame, dict):
        return ''
    choices = frame.get('choices') or []
    if not choices or not isinstance(choices[0], dict):
        return ''
    delta = choices[0].get('delta') or {}
    content = delta.get('content') if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ''


def decode_stream(chunks) -> str:
    """Decode a whole sequence of byte chunks into the reply text."""
    decoder = SSEDeltaDecoder()
    parts = []
    for chunk in chunks:
        parts.extend(decoder.feed(chunk))
    parts.extend(decoder.close())
    return ''.join(parts)
