from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied

from cores.exceptions import Conflict


class AttemptNotFound(NotFound):
    default_detail = 'Test attempt not found'


class MockTestNotFound(NotFound):
    default_detail = 'Test not found'


class AttemptForbidden(PermissionDenied):
    default_detail = 'You are not allowed to access this test attempt'


class MockTestInactive(PermissionDenied):
    default_detail = 'Test is not active'


class AlreadySubmitted(Conflict):
    default_detail = 'Test already submitted'


class InvalidAttempt(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid test attempt'
    default_code = 'invalid'


class AttemptStartConflict(Conflict):
    default_detail = 'Test attempt changed while starting, try again'
