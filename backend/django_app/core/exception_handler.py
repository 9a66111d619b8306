import logging

from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _error_text(data) -> str:
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        if 'error' in data:
            return str(data['error'])
        parts = []
        for field, messages in data.items():
            text = _error_text(messages)
            parts.append(text if field == 'non_field_errors' else f'{field}: {text}')
        return '; '.join(parts)
    if isinstance(data, (list, tuple)):
        return ' '.join(_error_text(item) for item in data)
    return str(data)


def custom_exception_handler(exc, context):
    response = exception_handler(exc, context)
    view = context.get('view')
    request = context.get('request')
    view_name = view.__class__.__name__ if view else 'UnknownView'
    path = request.path if request else 'unknown'
    method = request.method if request else 'unknown'

    if response is None:
        logger.exception(
            'Unhandled DRF exception: view=%s method=%s path=%s',
            view_name,
            method,
            path
        )
        return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        response.data = {'error': 'Unauthorized'}
    else:
        response.data = {'error': _error_text(response.data)}

    if response.status_code >= 500:
        logger.error(
            'Server error response: view=%s method=%s path=%s status=%s detail=%s',
            view_name,
            method,
            path,
            response.status_code,
            response.data
        )
    elif response.status_code >= 400:
        logger.warning(
            'Client error response: view=%s method=%s path=%s status=%s detail=%s',
            view_name,
            method,
            path,
            response.status_code,
            response.data
        )

    return response
