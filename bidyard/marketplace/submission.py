"""
Bid submission.

A provider's bid is validated, shown in their own bid list straight away
(optimistically, before the store confirms), then written. A failed write
takes the optimistic entry back out and hands the untouched draft back to
the caller on the error.
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional

from bidyard.logging_config import log_submission
from bidyard.marketplace.billing import BillingClient
from bidyard.marketplace.cache import BidCache
from bidyard.marketplace.config import MarketplaceConfig
from bidyard.marketplace.context import ActorContext
from bidyard.marketplace.errors import (
    BidValidationError,
    DuplicateBidError,
    InsufficientBalanceError,
    JobNotAcceptingBidsError,
    StoreError,
    StoreWriteError,
    UnauthorizedError,
)
from bidyard.marketplace.models import (
    PROVISIONAL_BID_PREFIX,
    Bid,
    BidDraft,
    BidStatus,
    Job,
    ProviderDisplay,
    utc_now,
)
from bidyard.marketplace.optimistic import OptimisticUpdate
from bidyard.marketplace.storage import BID_PER_PROVIDER_CONSTRAINT, MarketplaceStore

logger = logging.getLogger(__name__)


class BidSubmitter:
    """Validates and writes new bids for one client."""

    def __init__(
        self,
        store: MarketplaceStore,
        billing: BillingClient,
        cache: BidCache,
        config: Optional[MarketplaceConfig] = None,
    ):
        self.store = store
        self.billing = billing
        self.cache = cache
        self.config = config or MarketplaceConfig()

    def validate(self, actor: ActorContext, job: Job, draft: BidDraft) -> None:
        """Checks that need no store round trip."""
        if not actor.is_provider:
            raise UnauthorizedError("Only providers can submit bids")
        if job.author_id == actor.user_id:
            raise UnauthorizedError("Cannot bid on your own job")
        if not job.is_accepting_bids:
            raise JobNotAcceptingBidsError(f"Job is not accepting bids (status: {job.status})")
        if draft.amount <= 0:
            raise BidValidationError("Bid amount must be positive")
        if self.config.max_bid_amount is not None and draft.amount > self.config.max_bid_amount:
            raise BidValidationError(f"Bid amount exceeds maximum of {self.config.max_bid_amount}")
        if draft.notes and len(draft.notes) > self.config.max_notes_length:
            raise BidValidationError(
                f"Notes too long (max {self.config.max_notes_length} characters)"
            )

    async def check_balance(self, actor: ActorContext, draft: BidDraft) -> None:
        """Block the bid if the provider's balance cannot cover the commission."""
        required = self.config.commission_for(draft.amount)
        balance = await self.billing.get_balance(actor.user_id)
        if balance < required:
            logger.info(
                f"Bid blocked on balance | provider={actor.user_id} | "
                f"balance={balance} | required={required}"
            )
            raise InsufficientBalanceError(actor.user_id, balance, required)

    async def _provider_display(self, provider_id: str) -> ProviderDisplay:
        try:
            display = await self.store.get_provider_display(provider_id)
        except StoreError as e:
            logger.warning(f"Provider display lookup failed for {provider_id}: {e}")
            return ProviderDisplay()
        return display or ProviderDisplay()

    async def submit(self, actor: ActorContext, job: Job, draft: BidDraft) -> Bid:
        """Submit a pending bid on ``job``.

        Raises:
            BidValidationError, UnauthorizedError, JobNotAcceptingBidsError,
            InsufficientBalanceError, DuplicateBidError: before any local or
                store change.
            StoreWriteError: the write failed; the local list is restored and
                ``error.draft`` is the draft that was passed in.
        """
        self.validate(actor, job, draft)
        await self.check_balance(actor, draft)

        existing = await self.store.get_provider_bid(job.id, actor.user_id)
        if existing is not None:
            raise DuplicateBidError("You have already placed a bid on this job")

        display = await self._provider_display(actor.user_id)
        provisional = Bid(
            id=f"{PROVISIONAL_BID_PREFIX}{uuid.uuid4().hex}",
            job_id=job.id,
            provider_id=actor.user_id,
            amount=draft.amount,
            notes=draft.notes,
            status=BidStatus.PENDING.value,
            created_at=utc_now(),
            provider=display,
        )

        optimistic = OptimisticUpdate(self.cache, job.id, label="submit", actor_id=actor.user_id)
        async with optimistic as update:
            update.apply(lambda cache: cache.merge_bid(provisional))
            try:
                stored = await self.store.insert_bid(
                    job.id, actor.user_id, draft.amount, draft.notes
                )
            except StoreError as e:
                if e.constraint in (BID_PER_PROVIDER_CONSTRAINT, "unique"):
                    raise DuplicateBidError("You have already placed a bid on this job") from e
                raise StoreWriteError(str(e), draft=draft) from e

            confirmed = replace(stored, provider=display)
            update.apply(lambda cache: cache.replace_bid(job.id, provisional.id, confirmed))

        logger.info(f"Bid submitted | job={job.id} | bid={confirmed.id} | provider={actor.user_id}")
        log_submission(actor.user_id, job.id, confirmed.id, confirmed.amount)
        return confirmed
