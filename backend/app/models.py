"""Pydantic models for API requests and responses."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from bidyard.marketplace import AwardResult, Bid, Job

JobStatus = Literal["pending_review", "open", "active", "completed", "rejected"]
BidStatus = Literal["pending", "accepted", "rejected"]


# =============================================================================
# Bid Models
# =============================================================================

class BidCreate(BaseModel):
    """Request to place a bid on a job."""

    amount: Decimal = Field(..., gt=0)
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ProviderInfo(BaseModel):
    """Provider display data shown next to a bid."""

    name: str | None = None
    logo_url: str | None = None
    average_rating: float | None = None
    rating_count: int = 0


class BidResponse(BaseModel):
    """Bid details response."""

    id: str
    job_id: str
    provider_id: str
    amount: Decimal
    notes: str | None = None
    status: BidStatus
    created_at: datetime | None = None
    provider: ProviderInfo


class BidListResponse(BaseModel):
    """Bids for a job, amount ascending."""

    bids: list[BidResponse]
    total: int


# =============================================================================
# Job / Award Models
# =============================================================================

class JobResponse(BaseModel):
    """Job details response."""

    id: str
    author_id: str
    title: str
    details: str | None = None
    location: str | None = None
    is_urgent: bool = False
    status: JobStatus
    awarded_to: str | None = None
    category_id: str | None = None
    created_at: datetime | None = None


class AwardResponse(BaseModel):
    """Result of accepting a bid."""

    job: JobResponse
    bid: BidResponse
    conversation_id: str
    conversation_created: bool
    rejected_count: int


# =============================================================================
# Converters
# =============================================================================

def to_bid_response(bid: Bid) -> BidResponse:
    return BidResponse(
        id=bid.id,
        job_id=bid.job_id,
        provider_id=bid.provider_id,
        amount=bid.amount,
        notes=bid.notes,
        status=bid.status,
        created_at=bid.created_at,
        provider=ProviderInfo(
            name=bid.provider.name,
            logo_url=bid.provider.logo_url,
            average_rating=bid.provider.average_rating,
            rating_count=bid.provider.rating_count,
        ),
    )


def to_job_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        author_id=job.author_id,
        title=job.title,
        details=job.details,
        location=job.location,
        is_urgent=job.is_urgent,
        status=job.status,
        awarded_to=job.awarded_to,
        category_id=job.category_id,
        created_at=job.created_at,
    )


def to_award_response(result: AwardResult) -> AwardResponse:
    return AwardResponse(
        job=to_job_response(result.job),
        bid=to_bid_response(result.bid),
        conversation_id=result.conversation_id,
        conversation_created=result.conversation_created,
        rejected_count=result.rejected_count,
    )
