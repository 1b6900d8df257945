"""
Domain exceptions raised by the ledger service layer.

Every failure a service can report belongs to one of six kinds. The HTTP
layer maps each kind to a stable status family, see
``ledger.mixins.service_exception_handler``.
"""


class LedgerError(Exception):
    """
    Base class for ledger domain errors.

    Carries a stable machine-readable ``code`` plus optional structured
    ``context`` used for logging and API error payloads.
    """

    code = "ledger_error"
    default_message = "Ledger operation failed"

    def __init__(self, message: str = None, code: str = None, **context):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.context = context
        super().__init__(self.message)


class NotFound(LedgerError):
    code = "not_found"
    default_message = "Resource not found"


class OwnershipViolation(LedgerError):
    code = "ownership_violation"
    default_message = "Resource does not belong to the current user"


class InvalidInput(LedgerError):
    code = "invalid_input"
    default_message = "Invalid input"


class ScopeCoherenceViolation(LedgerError):
    """Personal/business scopes of related entities do not match."""

    code = "scope_coherence_violation"
    default_message = "Business scope mismatch between related entities"


class StateConflict(LedgerError):
    """Operation not allowed in the entity's current state."""

    code = "state_conflict"
    default_message = "Operation not permitted in the current state"


class NothingToInvoice(StateConflict):
    code = "nothing_to_invoice"
    default_message = "Nothing left to invoice for this quote"
