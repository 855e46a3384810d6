"""Exception hierarchy for ledger operations"""


class LedgerError(Exception):
    """Base exception for all ledger errors"""


class ValidationError(LedgerError):
    """A proposed ledger change was rejected before anything was written

    ``field`` names the form field the message belongs to (``amount``,
    ``date``, ``loan`` or ``status``).
    """

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message

    def __repr__(self):
        return f'<ValidationError {self.field}: {self.message}>'


class NotFoundError(LedgerError):
    """Raised when a referenced loan or payment does not exist"""


class TransientStoreError(LedgerError):
    """The data store timed out or kept conflicting; the caller may resubmit"""
