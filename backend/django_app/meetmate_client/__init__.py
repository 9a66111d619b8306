from .chat import ChatMessage, ChatSession
from .client import MeetMateClient
from .errors import CreditsDepleted, MeetMateError, RateLimitExceeded, Unauthorized, classify_error_message
from .realtime import RealtimeSync
from .sse import SSEDeltaDecoder, decode_stream

__all__ = [
    'ChatMessage',
    'ChatSession',
    'CreditsDepleted',
    'MeetMateClient',
    'MeetMateError',
    'RateLimitExceeded',
    'RealtimeSync',
    'SSEDeltaDecoder',
    'Unauthorized',
    'classify_error_message',
    'decode_stream',
]
