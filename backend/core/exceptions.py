"""
Error taxonomy shared by the booking, availability and payment services.

Every error is an ``APIException`` so views can let them propagate; the
exception handler below renders all of them (plus DRF's own errors) using the
same ``{"status", "message", "data"}`` envelope as successful responses.
"""

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import set_rollback

logger = logging.getLogger(__name__)


class ValidationError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "validation_error"


class NotFoundError(exceptions.APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class ConflictError(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with existing data."
    default_code = "conflict"


class InvalidStateError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The operation is not allowed in the current state."
    default_code = "invalid_state"


class UpstreamError(exceptions.APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "An upstream provider request failed."
    default_code = "upstream_error"


class InternalError(exceptions.APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "An internal error occurred."
    default_code = "internal_error"


def _message_and_data(detail):
    if isinstance(detail, (list, dict)):
        # Field errors from serializers: keep them as the payload.
        if isinstance(detail, dict) and set(detail.keys()) == {"detail"}:
            return str(detail["detail"]), None
        return "Invalid input.", detail
    return str(detail), None


def envelope_exception_handler(exc, context):
    """Render any exception raised inside a DRF view as an envelope response."""

    if isinstance(exc, Http404):
        exc = NotFoundError(str(exc) or None)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    if isinstance(exc, exceptions.APIException):
        headers = {}
        if getattr(exc, "auth_header", None):
            headers["WWW-Authenticate"] = exc.auth_header
        if getattr(exc, "wait", None):
            headers["Retry-After"] = "%d" % exc.wait

        message, data = _message_and_data(exc.detail)
        set_rollback()
        return Response(
            {"status": exc.status_code, "message": message, "data": data},
            status=exc.status_code,
            headers=headers,
        )

    view = context.get("view")
    logger.exception(
        "Unhandled error in %s", view.__class__.__name__ if view else "unknown view"
    )
    set_rollback()
    return Response(
        {
            "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "message": InternalError.default_detail,
            "data": None,
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
