from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from rest_framework.authtoken.models import Token


@database_sync_to_async
def _user_for_key(key):
    token = Token.objects.select_related('user').filter(key=key).first()
    return token.user if token else None


def _bearer_key(scope):
    for name, value in scope.get('headers', []):
        if name == b'authorization':
            header = value.decode('latin1')
            if header.startswith('Bearer '):
                return header[len('Bearer '):].strip()
    # Browsers cannot set headers on a websocket upgrade.
    query = parse_qs(scope.get('query_string', b'').decode('latin1'))
    values = query.get('token')
    return values[0] if values else None


class BearerTokenAuthMiddleware(BaseMiddleware):
    """Resolve ``scope['user']`` from a bearer token when one is supplied."""

    async def __call__(self, scope, receive, send):
        key = _bearer_key(scope)
        if key:
            user = await _user_for_key(key)
            if user is not None:
                scope = dict(scope, user=user)
        return await super().__call__(scope, receive, send)
