"""Configuration for the marketplace coordinator."""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

# Fraction of the bid amount a provider must hold as balance to submit (0.1%)
COMMISSION_RATE = Decimal("0.001")

MAX_NOTES_LENGTH = 2000


@dataclass(frozen=True)
class MarketplaceConfig:
    """Tunable marketplace parameters.

    Attributes:
        commission_rate: Fraction of a bid amount required as provider balance
        max_notes_length: Longest accepted free-text bid note
        max_bid_amount: Optional upper bound on a single bid (None = unbounded)
    """

    commission_rate: Decimal = COMMISSION_RATE
    max_notes_length: int = MAX_NOTES_LENGTH
    max_bid_amount: Optional[Decimal] = None

    def __post_init__(self):
        if not Decimal(0) <= Decimal(self.commission_rate) < Decimal(1):
            raise ValueError("commission_rate must be in [0, 1)")
        if self.max_notes_length <= 0:
            raise ValueError("max_notes_length must be positive")

    def commission_for(self, amount) -> Decimal:
        """Commission a provider must be able to cover for ``amount``."""
        return Decimal(str(amount)) * Decimal(self.commission_rate)

    @classmethod
    def from_env(cls) -> "MarketplaceConfig":
        """Read overrides from BIDYARD_* environment variables."""
        rate = os.environ.get("BIDYARD_COMMISSION_RATE")
        notes = os.environ.get("BIDYARD_MAX_NOTES_LENGTH")
        max_amount = os.environ.get("BIDYARD_MAX_BID_AMOUNT")
        return cls(
            commission_rate=Decimal(rate) if rate else COMMISSION_RATE,
            max_notes_length=int(notes) if notes else MAX_NOTES_LENGTH,
            max_bid_amount=Decimal(max_amount) if max_amount else None,
        )
