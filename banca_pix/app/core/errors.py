class BancaPixError(Exception):
    """Base class for every error that maps to a stable client-facing code."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class InvalidInputError(BancaPixError):
    """Raised for user-correctable input: bad name, amount, key or status."""

    status_code = 400
    code = "invalid_input"


class InvalidAmountError(InvalidInputError):
    """Raised when an amount is missing, zero or below the accepted minimum."""

    code = "invalid_amount"


class UnauthorizedError(BancaPixError):
    status_code = 401
    code = "unauthorized"


class InvalidCsrfError(BancaPixError):
    status_code = 403
    code = "invalid_csrf"


class ProviderUnavailableError(BancaPixError):
    """Raised when the payment provider cannot be reached or answers with an error."""

    status_code = 502
    code = "provider_unavailable"


class ProviderNotConfiguredError(BancaPixError):
    """Raised when no provider (or a different one) is configured for this deployment."""

    status_code = 404
    code = "provider_not_configured"


class InvalidSignatureError(BancaPixError):
    status_code = 401
    code = "invalid_signature"


class IpNotAllowedError(BancaPixError):
    status_code = 403
    code = "ip_not_allowed"


class NotFoundError(BancaPixError):
    status_code = 404
    code = "not_found"


class TokenNotFoundError(NotFoundError):
    """Raised for unknown or expired charge tokens; the payment state is indeterminate."""

    code = "token_not_found"


class RecordNotFoundError(NotFoundError):
    """Raised when a ledger record was already deleted or moved."""


class TransitionConflictError(NotFoundError):
    """Raised when the banca to promote no longer exists."""

    code = "transition_conflict"


class StorageFailureError(BancaPixError):
    """Raised after a ledger transaction was rolled back."""

    status_code = 500
    code = "storage_failure"
