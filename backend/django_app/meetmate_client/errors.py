"""Error types raised by the MeetMate API client."""

import httpx

RATE_LIMIT = 'rate_limit'
CREDITS = 'credits'
UNAUTHORIZED = 'unauthorized'
GENERIC = 'generic'


class MeetMateError(Exception):
    category = GENERIC

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class Unauthorized(MeetMateError):
    category = UNAUTHORIZED


class RateLimitExceeded(MeetMateError):
    category = RATE_LIMIT


class CreditsDepleted(MeetMateError):
    category = CREDITS


def classify_error_message(message: str) -> str:
    """Map a free-text error to the category the UI shows a toast for."""
    text = (message or '').lower()
    if 'rate limit' in text or '429' in text:
        return RATE_LIMIT
    if 'credits' in text or '402' in text:
        return CREDITS
    if 'unauthorized' in text or '401' in text:
        return UNAUTHORIZED
    return GENERIC


def error_from_response(response: httpx.Response) -> MeetMateError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = ''
    if isinstance(body, dict):
        message = body.get('error') or body.get('message') or ''
    message = message or f'Request failed with status {response.status_code}'

    if response.status_code == 401:
        return Unauthorized(message, response.status_code)
    if response.status_code == 429:
        return RateLimitExceeded(message, response.status_code)
    if response.status_code == 402:
        return CreditsDepleted(message, response.status_code)
    return MeetMateError(message, response.status_code)
