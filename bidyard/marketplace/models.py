"""
Marketplace data models.

Jobs are posted by customers, bids are submitted by providers, and a
conversation opens between the job author and the provider whose bid is
accepted. Statuses are stored as plain strings (the enum ``.value``) so rows
round-trip through the store unchanged.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Set

# Provisional bids applied optimistically before the store assigns an id
PROVISIONAL_BID_PREFIX = "provisional-"


class JobStatus(str, Enum):
    """Job lifecycle status."""

    PENDING_REVIEW = "pending_review"  # Awaiting moderation
    OPEN = "open"  # Accepting bids
    ACTIVE = "active"  # A bid was accepted
    COMPLETED = "completed"
    REJECTED = "rejected"  # Moderation rejected the listing


class BidStatus(str, Enum):
    """Bid lifecycle status. ``accepted`` and ``rejected`` are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ActorRole(str, Enum):
    """Role of the user performing an operation."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


VALID_JOB_TRANSITIONS: Dict[str, Set[str]] = {
    JobStatus.PENDING_REVIEW.value: {JobStatus.OPEN.value, JobStatus.REJECTED.value},
    JobStatus.OPEN.value: {JobStatus.ACTIVE.value},
    JobStatus.ACTIVE.value: {JobStatus.COMPLETED.value},
    JobStatus.COMPLETED.value: set(),
    JobStatus.REJECTED.value: set(),
}

VALID_BID_TRANSITIONS: Dict[str, Set[str]] = {
    BidStatus.PENDING.value: {BidStatus.ACCEPTED.value, BidStatus.REJECTED.value},
    BidStatus.ACCEPTED.value: set(),
    BidStatus.REJECTED.value: set(),
}

# Statuses in which a job must carry a winning provider
AWARDED_JOB_STATUSES = frozenset({JobStatus.ACTIVE.value, JobStatus.COMPLETED.value})


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, Enum) else status


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def to_amount(value: Any) -> Decimal:
    """Coerce a monetary amount to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


@dataclass
class Job:
    """A customer's job listing.

    ``awarded_to`` holds the winning provider id and is set if and only if
    the job is ``active`` or ``completed``.
    """

    id: str
    author_id: str
    title: str
    details: Optional[str] = None
    location: Optional[str] = None
    is_urgent: bool = False
    status: str = JobStatus.OPEN.value
    awarded_to: Optional[str] = None
    category_id: Optional[str] = None
    budget: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = _status_value(self.status)
        valid = {s.value for s in JobStatus}
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {sorted(valid)}")
        if not self.title:
            raise ValueError("Title is required")
        awarded = self.status in AWARDED_JOB_STATUSES
        if awarded and not self.awarded_to:
            raise ValueError(f"Job in status '{self.status}' must have awarded_to set")
        if not awarded and self.awarded_to:
            raise ValueError(f"Job in status '{self.status}' cannot have awarded_to set")

    @property
    def is_accepting_bids(self) -> bool:
        return self.status == JobStatus.OPEN.value

    @property
    def is_awarded(self) -> bool:
        return self.status in AWARDED_JOB_STATUSES

    def can_transition_to(self, new_status) -> bool:
        """Check whether the job may move to ``new_status``."""
        return _status_value(new_status) in VALID_JOB_TRANSITIONS.get(self.status, set())

    def awarded(self, provider_id: str) -> "Job":
        """Return a copy of this job awarded to ``provider_id``."""
        return replace(self, status=JobStatus.ACTIVE.value, awarded_to=provider_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "title": self.title,
            "details": self.details,
            "location": self.location,
            "is_urgent": self.is_urgent,
            "status": self.status,
            "awarded_to": self.awarded_to,
            "category_id": self.category_id,
            "budget": self.budget,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Build a job from a ``job_listings`` row."""
        location = data.get("location")
        if isinstance(location, dict):
            location = location.get("text")
        return cls(
            id=data["id"],
            author_id=data["author_id"],
            title=data["title"],
            details=data.get("details"),
            location=location,
            is_urgent=bool(data.get("is_urgent", data.get("isUrgent", False))),
            status=data.get("status") or JobStatus.OPEN.value,
            awarded_to=data.get("awarded_to"),
            category_id=data.get("category_id"),
            budget=data.get("budget"),
            created_at=_parse_dt(data.get("created_at")),
        )


@dataclass(frozen=True)
class ProviderDisplay:
    """Provider identity shown next to a bid. Captured at fetch time."""

    name: Optional[str] = None
    logo_url: Optional[str] = None
    average_rating: Optional[float] = None
    rating_count: int = 0

    @classmethod
    def from_profile(cls, profile: Optional[Dict[str, Any]]) -> "ProviderDisplay":
        if not profile:
            return cls()
        return cls(
            name=profile.get("company_name") or profile.get("name"),
            logo_url=profile.get("logo_url"),
            average_rating=profile.get("average_rating"),
            rating_count=profile.get("rating_count") or 0,
        )


@dataclass
class Bid:
    """A provider's priced proposal against a job."""

    id: str
    job_id: str
    provider_id: str
    amount: Decimal
    notes: Optional[str] = None
    status: str = BidStatus.PENDING.value
    created_at: Optional[datetime] = None
    provider: ProviderDisplay = field(default_factory=ProviderDisplay)

    def __post_init__(self):
        self.amount = to_amount(self.amount)
        if self.amount <= 0:
            raise ValueError("Bid amount must be positive")
        self.status = _status_value(self.status)
        valid = {s.value for s in BidStatus}
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {sorted(valid)}")

    @property
    def is_pending(self) -> bool:
        return self.status == BidStatus.PENDING.value

    @property
    def is_provisional(self) -> bool:
        """True for a locally applied bid the store has not confirmed yet."""
        return self.id.startswith(PROVISIONAL_BID_PREFIX)

    def can_transition_to(self, new_status) -> bool:
        return _status_value(new_status) in VALID_BID_TRANSITIONS.get(self.status, set())

    def with_status(self, status) -> "Bid":
        return replace(self, status=_status_value(status))

    def to_row(self) -> Dict[str, Any]:
        """Columns written to the ``bids`` table (display data excluded)."""
        return {
            "job_id": self.job_id,
            "provider_id": self.provider_id,
            "amount": float(self.amount),
            "notes": self.notes,
            "status": self.status,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            **self.to_row(),
            "amount": str(self.amount),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "provider_name": self.provider.name,
            "provider_logo_url": self.provider.logo_url,
            "provider_average_rating": self.provider.average_rating,
            "provider_rating_count": self.provider.rating_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], provider: Optional[ProviderDisplay] = None) -> "Bid":
        """Build a bid from a ``bids`` row, optionally joined with ``profiles``."""
        if provider is None:
            provider = ProviderDisplay.from_profile(data.get("profiles"))
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            provider_id=data["provider_id"],
            amount=data["amount"],
            notes=data.get("notes"),
            status=data.get("status") or BidStatus.PENDING.value,
            created_at=_parse_dt(data.get("created_at")),
            provider=provider,
        )


@dataclass
class Conversation:
    """Chat channel between a job's author and the awarded provider.

    At most one exists per (job_id, provider_id).
    """

    id: str
    job_id: str
    customer_id: str
    provider_id: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "customer_id": self.customer_id,
            "provider_id": self.provider_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            customer_id=data["customer_id"],
            provider_id=data["provider_id"],
            created_at=_parse_dt(data.get("created_at")),
        )


@dataclass(frozen=True)
class BidDraft:
    """What a provider typed into the bid form.

    Never mutated by submission, so a failed submit can hand it back.
    """

    amount: Decimal
    notes: Optional[str] = None

    @classmethod
    def of(cls, amount: Any, notes: Optional[str] = None) -> "BidDraft":
        return cls(amount=to_amount(amount), notes=notes or None)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
