"""Error kinds raised by the exchange engine.

Every error carries a stable ``code`` so an application layer can map it onto
its own transport (HTTP status, RPC status, ...). Validation errors are always
raised before any ledger mutation; ``InternalError`` means the request was
valid but could not be committed, and is the only kind worth retrying.
"""


class EngineError(Exception):
    """Base exception for all engine errors."""

    code = "unknown"


class InvalidArgumentError(EngineError):
    """Missing or malformed field, non-positive amount, identical tokens."""

    code = "invalid-argument"


class NotFoundError(EngineError):
    """Referenced account or stake does not exist."""

    code = "not-found"


class PermissionDeniedError(EngineError):
    """Caller is not allowed to perform the operation."""

    code = "permission-denied"


class FailedPreconditionError(EngineError):
    """System state does not allow the operation (flags, pair state, bounds)."""

    code = "failed-precondition"


class ResourceExhaustedError(EngineError):
    """Balance or quota is exhausted."""

    code = "resource-exhausted"


class ConflictError(EngineError):
    """Operation targets a record in a terminal state."""

    code = "conflict"


AlreadyExistsError = ConflictError


class InternalError(EngineError):
    """Commit or computation failure after validation succeeded."""

    code = "internal"


class InvalidSwapError(FailedPreconditionError):
    """Raised when no active pair exists or the amount is outside its bounds."""


class FeatureDisabledError(FailedPreconditionError):
    """Raised when swaps or staking are switched off by configuration."""


class AmountOutOfBoundsError(FailedPreconditionError):
    """Raised when a stake amount is outside the option's min/max."""


class InsufficientBalanceError(ResourceExhaustedError):
    """Raised when an account balance cannot cover a debit."""


class SwapLimitExceeded(ResourceExhaustedError):
    """Raised when the per-account or global swap window quota is used up."""


class LedgerError(InternalError):
    """Raised when a ledger transaction fails to commit."""
