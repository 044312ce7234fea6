"""Bid routes.

Endpoints for placing bids on jobs and awarding them.
"""

from fastapi import APIRouter, HTTPException, Request, status

from bidyard.marketplace import (
    AwardConflictError,
    AwardCoordinator,
    BidCache,
    BidNotFoundError,
    BidSubmitter,
    BidValidationError,
    DuplicateBidError,
    InsufficientBalanceError,
    InvalidTransitionError,
    Job,
    JobNotAcceptingBidsError,
    JobNotFoundError,
    MarketplaceError,
    MarketplaceStore,
    PartialAwardError,
    StoreError,
    StoreWriteError,
    UnauthorizedError,
)
from bidyard.marketplace.models import BidDraft

from ..auth import CurrentActor
from ..database import Billing, Marketplace, Store
from ..logging_config import get_logger
from ..models import (
    AwardResponse,
    BidCreate,
    BidListResponse,
    BidResponse,
    to_award_response,
    to_bid_response,
)
from ..rate_limit import AWARD_LIMIT, READ_LIMIT, SUBMIT_LIMIT, limiter

logger = get_logger("bidyard.bids")
router = APIRouter(prefix="/jobs", tags=["bids"])

# Most specific classes first
_STATUS_FOR_ERROR: list[tuple[type[MarketplaceError], int]] = [
    (InsufficientBalanceError, status.HTTP_402_PAYMENT_REQUIRED),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (JobNotFoundError, status.HTTP_404_NOT_FOUND),
    (BidNotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateBidError, status.HTTP_409_CONFLICT),
    (AwardConflictError, status.HTTP_409_CONFLICT),
    (BidValidationError, status.HTTP_400_BAD_REQUEST),
    (JobNotAcceptingBidsError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransitionError, status.HTTP_400_BAD_REQUEST),
    (PartialAwardError, status.HTTP_502_BAD_GATEWAY),
    (StoreWriteError, status.HTTP_502_BAD_GATEWAY),
    (StoreError, status.HTTP_502_BAD_GATEWAY),
]


def to_http_error(error: MarketplaceError) -> HTTPException:
    """Map a marketplace error onto an HTTPException."""
    for error_type, status_code in _STATUS_FOR_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(error),
    )


async def load_job(store: MarketplaceStore, job_id: str) -> Job:
    try:
        job = await store.get_job(job_id)
    except StoreError as e:
        raise to_http_error(e)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


# =============================================================================
# Routes
# =============================================================================

@router.get("/{job_id}/bids", response_model=BidListResponse)
@limiter.limit(READ_LIMIT)
async def list_bids(
    request: Request,
    job_id: str,
    actor: CurrentActor,
    store: Store,
):
    """
    List bids for a job, lowest amount first.

    The job author sees every bid; anyone else sees only their own.
    """
    logger.info(f"GET /jobs/{job_id}/bids | actor={actor.user_id}")

    job = await load_job(store, job_id)
    try:
        bids = await store.list_bids(job_id)
    except StoreError as e:
        raise to_http_error(e)

    if job.author_id != actor.user_id and actor.role != "admin":
        bids = [b for b in bids if b.provider_id == actor.user_id]

    return BidListResponse(bids=[to_bid_response(b) for b in bids], total=len(bids))


@router.post("/{job_id}/bids", response_model=BidResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SUBMIT_LIMIT)
async def submit_bid(
    request: Request,
    job_id: str,
    bid: BidCreate,
    actor: CurrentActor,
    store: Store,
    billing: Billing,
    config: Marketplace,
):
    """
    Place a bid on an open job.

    Providers only. One bid per provider per job. The provider's balance
    must cover the commission on the bid amount.
    """
    logger.info(f"POST /jobs/{job_id}/bids | actor={actor.user_id} | amount={bid.amount}")

    job = await load_job(store, job_id)
    submitter = BidSubmitter(store, billing, BidCache(), config)
    try:
        created = await submitter.submit(actor, job, BidDraft.of(bid.amount, bid.notes))
    except MarketplaceError as e:
        raise to_http_error(e)

    logger.info(f"Bid created | id={created.id} | job={job_id} | provider={actor.user_id}")
    return to_bid_response(created)


@router.post("/{job_id}/bids/{bid_id}/accept", response_model=AwardResponse)
@limiter.limit(AWARD_LIMIT)
async def accept_bid(
    request: Request,
    job_id: str,
    bid_id: str,
    actor: CurrentActor,
    store: Store,
):
    """
    Accept a bid and award the job.

    Only the job author can accept. Every other pending bid is rejected and
    a conversation with the winning provider is opened (or reused). Safe to
    retry after a partial failure.
    """
    logger.info(f"POST /jobs/{job_id}/bids/{bid_id}/accept | actor={actor.user_id}")

    job = await load_job(store, job_id)
    coordinator = AwardCoordinator(store, BidCache())
    try:
        result = await coordinator.accept_bid(actor, job, bid_id)
    except PartialAwardError as e:
        logger.error(f"Award incomplete | job={job_id} | bid={bid_id} | step={e.step} | cause={e.cause}")
        raise to_http_error(e)
    except MarketplaceError as e:
        raise to_http_error(e)

    logger.info(
        f"Job awarded | job={job_id} | bid={bid_id} | conversation={result.conversation_id}"
    )
    return to_award_response(result)


@router.post("/{job_id}/bids/{bid_id}/reject", response_model=BidResponse)
@limiter.limit(AWARD_LIMIT)
async def reject_bid(
    request: Request,
    job_id: str,
    bid_id: str,
    actor: CurrentActor,
    store: Store,
):
    """
    Reject a single pending bid without awarding the job.

    Only the job author can reject. Rejecting an already rejected bid
    returns it unchanged.
    """
    logger.info(f"POST /jobs/{job_id}/bids/{bid_id}/reject | actor={actor.user_id}")

    job = await load_job(store, job_id)
    coordinator = AwardCoordinator(store, BidCache())
    try:
        rejected = await coordinator.reject_bid(actor, job, bid_id)
    except MarketplaceError as e:
        raise to_http_error(e)

    return to_bid_response(rejected)
