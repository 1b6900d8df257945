"""
Service exception handler mixin.

Translates ledger domain errors raised by the service layer into DRF
exceptions with a stable HTTP status per error kind, and logs every
translation with structured context.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.exceptions import NotFound as DRFNotFound
from rest_framework.exceptions import PermissionDenied as DRFPermissionDenied
from rest_framework.exceptions import ValidationError as DRFValidationError

from ..exceptions import (
    InvalidInput,
    LedgerError,
    NotFound,
    OwnershipViolation,
    ScopeCoherenceViolation,
    StateConflict,
)

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not permitted in the current state."
    default_code = "conflict"


# domain error kind -> (DRF exception, log severity)
ERROR_MAPPING = (
    (NotFound, DRFNotFound, "low"),
    (OwnershipViolation, DRFPermissionDenied, "high"),
    (InvalidInput, DRFValidationError, "medium"),
    (ScopeCoherenceViolation, DRFValidationError, "medium"),
    (StateConflict, Conflict, "medium"),
)


def translate_ledger_error(error):
    """Return ``(drf_exception, severity)`` for a ``LedgerError``."""
    for error_class, drf_class, severity in ERROR_MAPPING:
        if isinstance(error, error_class):
            if drf_class is DRFValidationError:
                return drf_class({"detail": error.message, "code": error.code}), severity
            return drf_class(detail=error.message, code=error.code), severity
    return APIException(detail="Service operation failed", code="service_error"), "critical"


class ServiceExceptionHandlerMixin:
    """
    Mixin for views that delegate to the service layer.

    Mapping:
        NotFound -> 404, OwnershipViolation -> 403,
        InvalidInput / ScopeCoherenceViolation / Django ValidationError -> 400,
        StateConflict (incl. NothingToInvoice) -> 409,
        anything else -> 500 with a generic message.

    Usage:
        invoice = self.handle_service_call(
            InvoiceService.get_invoice, request.user, pk
        )
    """

    def handle_service_call(self, service_call, *args, **kwargs):
        service_name = getattr(service_call, "__qualname__", "").split(".")[0] or type(self).__name__
        method_name = getattr(service_call, "__name__", str(service_call))
        request = getattr(self, "request", None)
        user_id = getattr(getattr(request, "user", None), "id", None) if request else None

        logger.debug(
            "Service call execution initiated",
            extra={
                "service_name": service_name,
                "method_name": method_name,
                "user_id": user_id,
                "kwargs_keys": list(kwargs.keys()),
                "action": "service_call_start",
                "component": "ServiceExceptionHandlerMixin",
            },
        )

        try:
            return service_call(*args, **kwargs)

        except LedgerError as e:
            drf_error, severity = translate_ledger_error(e)
            log = logger.error if severity in ("high", "critical") else logger.warning
            log(
                "Service domain error",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_type": type(e).__name__,
                    "error_code": e.code,
                    "error_message": e.message,
                    "status_code": drf_error.status_code,
                    "action": "service_domain_error",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": severity,
                },
            )
            raise drf_error

        except DjangoValidationError as e:
            error_messages = e.messages if hasattr(e, "messages") else [str(e)]
            logger.warning(
                "Service validation error (Django)",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_type": "DjangoValidationError",
                    "error_messages": error_messages,
                    "action": "service_validation_error_django",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "medium",
                },
            )
            raise DRFValidationError(error_messages)

        except APIException:
            raise

        except Exception as e:
            logger.error(
                "Service operation failed unexpectedly",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "args_count": len(args),
                    "kwargs_keys": list(kwargs.keys()),
                    "action": "service_unexpected_error",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "critical",
                },
                exc_info=True,
            )
            # Generic message, no internals in the response.
            raise APIException(detail="Service operation failed", code="service_error")
