"""Exceptions raised by the marketplace coordinator.

Every failure surfaces to the initiating caller.
"""

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base exception for marketplace operations."""

    pass


# === Validation failures (raised before any store write) ===


class BidValidationError(MarketplaceError):
    """Raised when a bid draft is malformed (non-positive amount, notes too long)."""

    pass


class InsufficientBalanceError(MarketplaceError):
    """Raised when a provider cannot cover the commission for a bid.

    This is a rejected precondition, not a retryable failure.
    """

    def __init__(self, provider_id: str, balance, required):
        super().__init__(
            f"Insufficient balance to bid: balance {balance}, required commission {required}"
        )
        self.provider_id = provider_id
        self.balance = balance
        self.required = required


class JobNotAcceptingBidsError(MarketplaceError):
    """Raised when a bid targets a job that is not open."""

    pass


class UnauthorizedError(MarketplaceError):
    """Raised when the actor is not allowed to perform an operation."""

    pass


class DuplicateBidError(MarketplaceError):
    """Raised when a provider already holds a bid on the job."""

    pass


# === Lookups ===


class JobNotFoundError(MarketplaceError):
    """Raised when a job is not found."""

    pass


class BidNotFoundError(MarketplaceError):
    """Raised when a bid is not found for the job."""

    pass


# === Transitions ===


class InvalidTransitionError(MarketplaceError):
    """Raised when a status transition is not allowed."""

    pass


class AwardConflictError(MarketplaceError):
    """Raised when a job was already awarded to a different provider."""

    def __init__(self, job_id: str, awarded_to: Optional[str]):
        super().__init__(f"Job {job_id} was already awarded to another provider")
        self.job_id = job_id
        self.awarded_to = awarded_to


# === Store failures ===


class StoreError(MarketplaceError):
    """Raised by store adapters when a read or write fails."""

    def __init__(self, message: str, *, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint


class StoreWriteError(MarketplaceError):
    """Raised when a bid submission could not be written.

    The draft the caller submitted is attached untouched so the form can
    stay populated for a manual retry.
    """

    def __init__(self, message: str, draft: Any = None):
        super().__init__(message)
        self.draft = draft


class PartialAwardError(MarketplaceError):
    """Raised when a store step of the award sequence fails.

    Steps that already committed are not compensated. Re-running the whole
    award is safe because every step is idempotent or guarded.
    """

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"Award failed at step '{step}': {cause}")
        self.step = step
        self.cause = cause
