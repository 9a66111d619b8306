from rest_framework.authentication import TokenAuthentication


class BearerTokenAuthentication(TokenAuthentication):
    """DRF token auth that accepts ``Authorization: Bearer <key>``."""

    keyword = 'Bearer'
