"""
Core — Exception Handling

Domain errors raised by the inventory and logistics services, and the DRF
exception handler that renders them in the VendOps error envelope.

@file core/exceptions.py
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('vendops')


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class BusinessRuleViolation(APIException):
    """Raised when a business rule is violated at the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Business rule violation.'
    default_code = 'BUSINESS_RULE_VIOLATION'


class InvalidIdentifier(BusinessRuleViolation):
    """The supplied id is not a well-formed record identifier."""
    default_detail = 'Invalid identifier.'
    default_code = 'INVALID_IDENTIFIER'

    def __init__(self, value=None, detail=None, code=None):
        self.value = value
        if detail is None and value is not None:
            detail = f'Invalid identifier: {value!r}.'
        super().__init__(detail=detail, code=code)


class InvariantViolation(BusinessRuleViolation):
    """A requested change would break a stored-record invariant (negative quantity, max <= min)."""
    default_detail = 'Invariant violation.'
    default_code = 'INVARIANT_VIOLATION'


class InvalidStateTransition(BusinessRuleViolation):
    """Raised when a state machine transition is not allowed."""
    default_detail = 'Invalid state transition.'
    default_code = 'INVALID_STATE_TRANSITION'


class InsufficientStockError(APIException):
    """
    Raised when a dispatch or reduction asks for more units of a SKU than
    non-archived stock holds. Carries the first failing sku with the
    available and requested counts.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock for this operation.'
    default_code = 'INSUFFICIENT_STOCK'

    def __init__(self, sku=None, available=0, requested=0, detail=None, code=None):
        self.sku = sku
        self.available = available
        self.requested = requested
        if detail is None and sku is not None:
            detail = {
                'detail': (
                    f'Insufficient stock for SKU {sku}: '
                    f'available={available}, requested={requested}.'
                ),
                'sku': sku,
                'available': available,
                'requested': requested,
            }
        super().__init__(detail=detail, code=code)


class DuplicateResourceError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'DUPLICATE_RESOURCE'


class ResourceNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'RESOURCE_NOT_FOUND'


class IdentifierExhausted(APIException):
    """No unused reference number could be minted within the allowed attempts."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Could not allocate a unique reference number.'
    default_code = 'IDENTIFIER_EXHAUSTED'


# ---------------------------------------------------------------------------
# Standard exception handler
# ---------------------------------------------------------------------------

def standard_exception_handler(exc, context):
    """
    Wraps every error response in the standard envelope:
      { "success": false, "errors": {...}, "code": "ERROR_CODE" }
    """
    if isinstance(exc, Http404):
        exc = ResourceNotFoundError()
    elif isinstance(exc, PermissionDenied):
        exc = APIException(detail='Permission denied.', code='PERMISSION_DENIED')
        exc.status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, ValidationError):
        data = {
            'success': False,
            'errors': exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages},
            'code': 'VALIDATION_ERROR',
        }
        return Response(data, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)

    if response is None:
        logger.exception('Unhandled exception in view: %s', exc)
        return Response(
            {'success': False, 'errors': {'detail': ['Internal server error.']}, 'code': 'INTERNAL_ERROR'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    code = getattr(exc, 'default_code', 'ERROR')
    if isinstance(response.data, dict):
        errors = response.data
        code = errors.pop('code', code)
    elif isinstance(response.data, list):
        errors = {'detail': response.data}
    else:
        errors = {'detail': [str(response.data)]}

    response.data = {
        'success': False,
        'errors': errors,
        'code': code,
    }
    return response
