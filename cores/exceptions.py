import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

def api_exception_handler(exc, context):
    """
    Wraps DRF's handler so every error leaves the API as {"error": "..."}.
    Field-level validation errors keep their per-field mapping.
    """
    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception("Unhandled error in %s", type(view).__name__ if view else 'unknown view')
        return None

    if isinstance(response.data, dict) and set(response.data) == {'detail'}:
        response.data = {'error': response.data['detail']}
    elif isinstance(response.data, list):
        response.data = {'error': ' '.join(str(item) for item in response.data)}

    if response.status_code >= 500:
        logger.error("API error %s: %s", response.status_code, response.data)
    return response


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'
