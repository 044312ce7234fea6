"""Bid lifecycle and job-award coordination.

Models:
- Job: A customer's work listing
- Bid: A provider's priced offer on a job
- Conversation: The customer/provider channel opened by an award
- JobStatus, BidStatus: Lifecycle statuses

Paths:
- BidSubmitter: Validate, optimistically show, and write a bid
- BidObserver / BidWatch: Live, deduplicated view of a job's bids
- AwardCoordinator: Accept one bid, reject its siblings, open a conversation

Client:
- MarketplaceClient: One actor's facade over all of the above
"""

from bidyard.marketplace.award import AWARD_STEPS, AwardCoordinator, AwardResult, AwardStep
from bidyard.marketplace.billing import BillingClient, InMemoryBilling, SupabaseBilling
from bidyard.marketplace.cache import BidCache
from bidyard.marketplace.client import MarketplaceClient
from bidyard.marketplace.config import COMMISSION_RATE, MarketplaceConfig
from bidyard.marketplace.context import ActorContext
from bidyard.marketplace.errors import (
    AwardConflictError,
    BidNotFoundError,
    BidValidationError,
    DuplicateBidError,
    InsufficientBalanceError,
    InvalidTransitionError,
    JobNotAcceptingBidsError,
    JobNotFoundError,
    MarketplaceError,
    PartialAwardError,
    StoreError,
    StoreWriteError,
    UnauthorizedError,
)
from bidyard.marketplace.feed import ChangeFeed, InMemoryChangeFeed, SupabaseRealtimeFeed
from bidyard.marketplace.models import (
    VALID_BID_TRANSITIONS,
    VALID_JOB_TRANSITIONS,
    Bid,
    BidDraft,
    BidStatus,
    Conversation,
    Job,
    JobStatus,
    ProviderDisplay,
)
from bidyard.marketplace.observation import BidObserver, BidWatch
from bidyard.marketplace.optimistic import OptimisticUpdate
from bidyard.marketplace.storage import InMemoryMarketplaceStore, MarketplaceStore, WriteResult
from bidyard.marketplace.submission import BidSubmitter
from bidyard.marketplace.supabase_store import SupabaseMarketplaceStore

__all__ = [
    # Models
    "Job",
    "Bid",
    "BidDraft",
    "Conversation",
    "ProviderDisplay",
    "JobStatus",
    "BidStatus",
    "VALID_JOB_TRANSITIONS",
    "VALID_BID_TRANSITIONS",
    "ActorContext",
    # Collaborators
    "MarketplaceStore",
    "InMemoryMarketplaceStore",
    "SupabaseMarketplaceStore",
    "WriteResult",
    "ChangeFeed",
    "InMemoryChangeFeed",
    "SupabaseRealtimeFeed",
    "BillingClient",
    "InMemoryBilling",
    "SupabaseBilling",
    # Paths
    "BidCache",
    "OptimisticUpdate",
    "BidSubmitter",
    "BidObserver",
    "BidWatch",
    "AwardCoordinator",
    "AwardResult",
    "AwardStep",
    "AWARD_STEPS",
    "MarketplaceClient",
    # Config
    "MarketplaceConfig",
    "COMMISSION_RATE",
    # Errors
    "MarketplaceError",
    "BidValidationError",
    "InsufficientBalanceError",
    "JobNotAcceptingBidsError",
    "UnauthorizedError",
    "DuplicateBidError",
    "JobNotFoundError",
    "BidNotFoundError",
    "InvalidTransitionError",
    "AwardConflictError",
    "StoreError",
    "StoreWriteError",
    "PartialAwardError",
]
