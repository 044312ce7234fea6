"""Ids and builders shared by the marketplace tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from bidyard.marketplace import Bid

CUSTOMER_ID = "customer-1"
PROVIDER_A = "provider-a"
PROVIDER_B = "provider-b"
PROVIDER_C = "provider-c"
JOB_ID = "job-1"


def make_bid(bid_id, amount, provider_id=PROVIDER_A, status="pending", job_id=JOB_ID, offset=0):
    """Build a bid with a deterministic created_at."""
    created = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc) + timedelta(seconds=offset)
    return Bid(
        id=bid_id,
        job_id=job_id,
        provider_id=provider_id,
        amount=Decimal(str(amount)),
        status=status,
        created_at=created,
    )


def bid_row(bid_id, amount, provider_id=PROVIDER_A, job_id=JOB_ID, offset=0):
    """A ``bids`` row as the change feed delivers it."""
    created = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc) + timedelta(seconds=offset)
    return {
        "id": bid_id,
        "job_id": job_id,
        "provider_id": provider_id,
        "amount": amount,
        "notes": None,
        "status": "pending",
        "created_at": created.isoformat(),
    }
