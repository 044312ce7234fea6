"""
Award coordinator.

Accepting a bid is a saga of store writes issued one after another, each
only after the previous one completed:

    1. award_job           job -> active, awarded_to = winner   (guarded: CAS)
    2. reject_siblings     other pending bids -> rejected       (idempotent)
    3. accept_bid          target bid -> accepted               (guarded)
    4. ensure_conversation find or create (job, winner) chat    (guarded)

Before step 1 the local cache is updated optimistically (target accepted,
siblings rejected, job active). If any step fails, the cache is restored to
its pre-attempt snapshot and the failure is raised. Steps that already
committed are left in place: there are no compensating writes. Re-running
the whole award finishes the job, because a re-run of each step is a no-op
once its effect is in the store.

Concurrent awards on one job are resolved by the compare-and-swap in
step 1: only one provider can ever be written into ``awarded_to``.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from bidyard.logging_config import log_award
from bidyard.marketplace.cache import BidCache
from bidyard.marketplace.context import ActorContext
from bidyard.marketplace.errors import (
    AwardConflictError,
    BidNotFoundError,
    InvalidTransitionError,
    JobNotFoundError,
    PartialAwardError,
    StoreError,
    UnauthorizedError,
)
from bidyard.marketplace.models import Bid, BidStatus, Conversation, Job, JobStatus
from bidyard.marketplace.optimistic import OptimisticUpdate
from bidyard.marketplace.storage import MarketplaceStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

IDEMPOTENT = "idempotent"  # Re-running after success changes nothing
GUARDED = "guarded"  # Checks current state before writing


@dataclass(frozen=True)
class AwardStep:
    """One store step of the award saga."""

    name: str
    guarantee: str
    description: str


AWARD_JOB = AwardStep("award_job", GUARDED, "Mark job active and awarded to the winner")
REJECT_SIBLINGS = AwardStep("reject_siblings", IDEMPOTENT, "Reject all other pending bids")
ACCEPT_BID = AwardStep("accept_bid", GUARDED, "Mark the target bid accepted")
ENSURE_CONVERSATION = AwardStep(
    "ensure_conversation", GUARDED, "Find or create the customer/provider conversation"
)

AWARD_STEPS: Tuple[AwardStep, ...] = (AWARD_JOB, REJECT_SIBLINGS, ACCEPT_BID, ENSURE_CONVERSATION)


@dataclass
class AwardResult:
    """Outcome of a completed award.

    ``conversation_id`` is what the customer client navigates to.
    ``writes`` counts store rows changed by this run; 0 means the job was
    already fully awarded.
    """

    job: Job
    bid: Bid
    conversation_id: str
    conversation_created: bool
    rejected_count: int
    writes: int


def sibling_bids(bids: List[Bid], target_id: str) -> List[Bid]:
    """Pending bids other than the target."""
    return [b for b in bids if b.is_pending and b.id != target_id]


class AwardCoordinator:
    """Runs bid acceptance and single-bid rejection for one client."""

    def __init__(self, store: MarketplaceStore, cache: BidCache):
        self.store = store
        self.cache = cache

    async def _current_bids(self, job_id: str, bids: Optional[List[Bid]]) -> List[Bid]:
        if bids is not None:
            self.cache.set_bids(job_id, bids)
            return list(bids)
        if not self.cache.has_bids(job_id):
            self.cache.set_bids(job_id, await self.store.list_bids(job_id))
        return self.cache.bids(job_id)

    def _check_can_award(self, actor: ActorContext, job: Job, target: Bid) -> None:
        if job.author_id != actor.user_id:
            raise UnauthorizedError("Only the job author can accept bids")
        if target.status == BidStatus.REJECTED.value:
            raise InvalidTransitionError("Cannot accept a rejected bid")
        if job.is_awarded:
            if job.awarded_to != target.provider_id:
                raise AwardConflictError(job.id, job.awarded_to)
            if job.status != JobStatus.ACTIVE.value:
                raise InvalidTransitionError(f"Cannot award job in status: {job.status}")
        elif not job.is_accepting_bids:
            raise InvalidTransitionError(f"Cannot award job in status: {job.status}")

    async def _run_step(self, step: AwardStep, action: Callable[[], Awaitable[T]]) -> T:
        try:
            return await action()
        except (AwardConflictError, JobNotFoundError):
            raise
        except Exception as e:
            raise PartialAwardError(step.name, e) from e

    async def accept_bid(
        self,
        actor: ActorContext,
        job: Job,
        bid_id: str,
        bids: Optional[List[Bid]] = None,
    ) -> AwardResult:
        """Accept ``bid_id`` on ``job``, rejecting every other pending bid.

        Args:
            actor: The customer performing the award (must be the job author)
            job: The job as the caller currently sees it
            bid_id: The bid to accept
            bids: The caller's current bid list; defaults to the cached list

        Raises:
            UnauthorizedError, BidNotFoundError, InvalidTransitionError,
            AwardConflictError: preconditions, nothing changed locally.
            AwardConflictError: the store says another provider already won.
            PartialAwardError: a later store step failed; earlier steps stay
                committed, the local view is restored, retrying is safe.
        """
        current = await self._current_bids(job.id, bids)
        target = next((b for b in current if b.id == bid_id), None)
        if target is None:
            raise BidNotFoundError(f"Bid {bid_id} not found for job {job.id}")
        self._check_can_award(actor, job, target)

        siblings = sibling_bids(current, bid_id)
        provider_id = target.provider_id
        if self.cache.job(job.id) is None:
            self.cache.put_job(job)

        def apply_award(cache: BidCache) -> None:
            statuses = {b.id: BidStatus.REJECTED.value for b in siblings}
            statuses[bid_id] = BidStatus.ACCEPTED.value
            cache.set_bid_statuses(job.id, statuses)
            cache.put_job(job.awarded(provider_id) if not job.is_awarded else job)

        optimistic = OptimisticUpdate(self.cache, job.id, label="award", actor_id=actor.user_id)
        async with optimistic as update:
            update.apply(apply_award)

            award = await self._run_step(AWARD_JOB, lambda: self.store.award_job(job.id, provider_id))
            if award.error == "not_found":
                raise JobNotFoundError(f"Job {job.id} not found")
            if award.error == "conflict":
                raise AwardConflictError(job.id, award.row.awarded_to if award.row else None)

            rejected = await self._run_step(
                REJECT_SIBLINGS,
                lambda: self.store.reject_pending_bids(job.id, exclude_bid_id=bid_id),
            )

            accepted = await self._run_step(ACCEPT_BID, lambda: self._accept_target(bid_id))

            conversation, created = await self._run_step(
                ENSURE_CONVERSATION,
                lambda: self._ensure_conversation(job, provider_id),
            )

            self.cache.put_job(award.row)

        writes = int(award.changed) + rejected + int(accepted[1]) + int(created)
        logger.info(
            f"Bid accepted | job={job.id} | bid={bid_id} | provider={provider_id} | "
            f"rejected={rejected} | conversation={conversation.id} | writes={writes}"
        )
        log_award(actor.user_id, job.id, bid_id, provider_id, conversation.id, writes=writes)
        return AwardResult(
            job=award.row,
            bid=accepted[0],
            conversation_id=conversation.id,
            conversation_created=created,
            rejected_count=rejected,
            writes=writes,
        )

    async def _accept_target(self, bid_id: str) -> Tuple[Bid, bool]:
        result = await self.store.set_bid_status(
            bid_id, BidStatus.ACCEPTED, expected_status=BidStatus.PENDING
        )
        if result.error == "not_found":
            raise BidNotFoundError(f"Bid {bid_id} not found")
        if result.error == "conflict":
            if result.row.status == BidStatus.ACCEPTED.value:
                return result.row, False
            raise InvalidTransitionError(
                f"Bid {bid_id} is {result.row.status} and cannot be accepted"
            )
        return result.row, result.changed

    async def _ensure_conversation(self, job: Job, provider_id: str) -> Tuple[Conversation, bool]:
        existing = await self.store.find_conversation(job.id, provider_id)
        if existing is not None:
            return existing, False
        try:
            return await self.store.insert_conversation(job.id, job.author_id, provider_id), True
        except StoreError as e:
            if e.constraint is None:
                raise
            # Lost a race with another award attempt; the row exists now
            existing = await self.store.find_conversation(job.id, provider_id)
            if existing is None:
                raise
            return existing, False

    async def reject_bid(
        self,
        actor: ActorContext,
        job: Job,
        bid_id: str,
        bids: Optional[List[Bid]] = None,
    ) -> Bid:
        """Reject a single pending bid without awarding the job.

        Rejecting an already rejected bid is a no-op.
        """
        current = await self._current_bids(job.id, bids)
        target = next((b for b in current if b.id == bid_id), None)
        if target is None:
            raise BidNotFoundError(f"Bid {bid_id} not found for job {job.id}")
        if job.author_id != actor.user_id:
            raise UnauthorizedError("Only the job author can reject bids")
        if target.status == BidStatus.REJECTED.value:
            return target
        if target.status == BidStatus.ACCEPTED.value:
            raise InvalidTransitionError("Cannot reject an accepted bid")

        optimistic = OptimisticUpdate(self.cache, job.id, label="reject", actor_id=actor.user_id)
        async with optimistic as update:
            update.apply(
                lambda cache: cache.set_bid_statuses(job.id, {bid_id: BidStatus.REJECTED.value})
            )
            result = await self.store.set_bid_status(
                bid_id, BidStatus.REJECTED, expected_status=BidStatus.PENDING
            )
            if result.error == "not_found":
                raise BidNotFoundError(f"Bid {bid_id} not found")
            if result.error == "conflict" and result.row.status != BidStatus.REJECTED.value:
                raise InvalidTransitionError(
                    f"Bid {bid_id} is {result.row.status} and cannot be rejected"
                )

        logger.info(f"Bid rejected | job={job.id} | bid={bid_id}")
        return result.row
