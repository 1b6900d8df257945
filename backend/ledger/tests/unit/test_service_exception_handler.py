# ledger/tests/unit/test_service_exception_handler.py
from unittest.mock import Mock, patch

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import APIException
from rest_framework.exceptions import NotFound as DRFNotFound
from rest_framework.exceptions import PermissionDenied as DRFPermissionDenied
from rest_framework.exceptions import ValidationError as DRFValidationError

from ledger.exceptions import (
    InvalidInput,
    NothingToInvoice,
    NotFound,
    OwnershipViolation,
    ScopeCoherenceViolation,
    StateConflict,
)
from ledger.mixins.service_exception_handler import (
    Conflict,
    ServiceExceptionHandlerMixin,
    translate_ledger_error,
)


class MockService:
    """Simulates the failure kinds of the service layer."""

    def method_success(self, value):
        return value

    def method_not_found(self):
        raise NotFound("Invoice not found", code="invoice_not_found")

    def method_ownership(self):
        raise OwnershipViolation(code="invoice_ownership_violation")

    def method_invalid(self):
        raise InvalidInput("amount must be positive", code="invalid_amount")

    def method_scope(self):
        raise ScopeCoherenceViolation(code="account_scope_mismatch")

    def method_conflict(self):
        raise StateConflict("Only draft quotes can be edited", code="quote_not_draft")

    def method_nothing_to_invoice(self):
        raise NothingToInvoice()

    def method_django_validation_error(self):
        raise DjangoValidationError("Django validation error")

    def method_api_exception(self):
        raise DRFNotFound("Already translated")

    def method_generic_exception(self):
        raise Exception("database exploded")


class TestServiceExceptionHandlerMixin:
    def setup_method(self, method):
        self.mixin_instance = ServiceExceptionHandlerMixin()
        self.mixin_instance.request = Mock()
        self.mixin_instance.request.user = Mock(id=1)
        self.mock_service = MockService()

    def test_success_passes_result_through(self):
        assert self.mixin_instance.handle_service_call(self.mock_service.method_success, 42) == 42

    @pytest.mark.parametrize(
        "method_name, drf_class, status_code",
        [
            ("method_not_found", DRFNotFound, 404),
            ("method_ownership", DRFPermissionDenied, 403),
            ("method_invalid", DRFValidationError, 400),
            ("method_scope", DRFValidationError, 400),
            ("method_conflict", Conflict, 409),
            ("method_nothing_to_invoice", Conflict, 409),
        ],
    )
    @patch("ledger.mixins.service_exception_handler.logger")
    def test_domain_errors_mapped(self, mock_logger, method_name, drf_class, status_code):
        with pytest.raises(drf_class) as exc_info:
            self.mixin_instance.handle_service_call(getattr(self.mock_service, method_name))

        assert exc_info.value.status_code == status_code

    def test_validation_payload_carries_code(self):
        with pytest.raises(DRFValidationError) as exc_info:
            self.mixin_instance.handle_service_call(self.mock_service.method_invalid)

        detail = exc_info.value.detail
        assert str(detail["detail"]) == "amount must be positive"
        assert str(detail["code"]) == "invalid_amount"

    def test_conflict_carries_code(self):
        with pytest.raises(Conflict) as exc_info:
            self.mixin_instance.handle_service_call(self.mock_service.method_conflict)
        assert exc_info.value.get_codes() == "quote_not_draft"

    @patch("ledger.mixins.service_exception_handler.logger")
    def test_ownership_logged_as_error(self, mock_logger):
        with pytest.raises(DRFPermissionDenied):
            self.mixin_instance.handle_service_call(self.mock_service.method_ownership)

        mock_logger.error.assert_called_once()
        extra = mock_logger.error.call_args.kwargs["extra"]
        assert extra["error_code"] == "invoice_ownership_violation"
        assert extra["severity"] == "high"
        assert extra["user_id"] == 1

    @patch("ledger.mixins.service_exception_handler.logger")
    def test_invalid_input_logged_as_warning(self, mock_logger):
        with pytest.raises(DRFValidationError):
            self.mixin_instance.handle_service_call(self.mock_service.method_invalid)

        mock_logger.warning.assert_called_once()
        mock_logger.error.assert_not_called()

    def test_django_validation_error(self):
        with pytest.raises(DRFValidationError):
            self.mixin_instance.handle_service_call(self.mock_service.method_django_validation_error)

    def test_api_exception_reraised_unchanged(self):
        with pytest.raises(DRFNotFound, match="Already translated"):
            self.mixin_instance.handle_service_call(self.mock_service.method_api_exception)

    @patch("ledger.mixins.service_exception_handler.logger")
    def test_unexpected_error_is_500_without_details(self, mock_logger):
        with pytest.raises(APIException) as exc_info:
            self.mixin_instance.handle_service_call(self.mock_service.method_generic_exception)

        assert exc_info.value.status_code == 500
        assert "database exploded" not in str(exc_info.value.detail)
        mock_logger.error.assert_called_once()


class TestTranslateLedgerError:
    def test_subclass_maps_to_parent_kind(self):
        drf_error, severity = translate_ledger_error(NothingToInvoice())
        assert isinstance(drf_error, Conflict)
        assert severity == "medium"

    def test_not_found_is_low_severity(self):
        _, severity = translate_ledger_error(NotFound())
        assert severity == "low"
