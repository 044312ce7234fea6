"""
Read-only access to provider balances.

Balances are owned by the billing system. The coordinator only reads them to
block a bid whose commission the provider cannot cover; it never debits.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

from supabase import Client

from bidyard.marketplace.errors import StoreError
from bidyard.marketplace.models import to_amount

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"


class BillingClient(Protocol):
    """Protocol for balance lookups."""

    async def get_balance(self, provider_id: str) -> Decimal:
        """Current prepaid balance for a provider (0 if unknown)."""
        ...


class InMemoryBilling:
    """Fixed balances for testing and local development."""

    def __init__(self, balances: Optional[Dict[str, Any]] = None):
        self._balances = {k: to_amount(v) for k, v in (balances or {}).items()}

    def set_balance(self, provider_id: str, balance) -> None:
        self._balances[provider_id] = to_amount(balance)

    async def get_balance(self, provider_id: str) -> Decimal:
        return self._balances.get(provider_id, Decimal(0))


class SupabaseBilling:
    """Reads ``profiles.balance`` through a supabase client."""

    def __init__(self, db: Client):
        self._db = db

    async def get_balance(self, provider_id: str) -> Decimal:
        def _query():
            return self._db.table(PROFILES_TABLE).select("balance").eq("id", provider_id).execute()

        try:
            result = await asyncio.to_thread(_query)
        except Exception as e:
            raise StoreError(f"Failed to read balance for {provider_id}: {e}") from e
        if not result.data:
            logger.debug(f"No profile row for provider {provider_id}, balance treated as 0")
            return Decimal(0)
        balance = result.data[0].get("balance")
        return to_amount(balance) if balance is not None else Decimal(0)
