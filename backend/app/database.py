"""Database utilities for Supabase integration."""

from typing import Annotated

from fastapi import Depends

from bidyard.marketplace import (
    BillingClient,
    MarketplaceConfig,
    MarketplaceStore,
    SupabaseBilling,
    SupabaseMarketplaceStore,
)
from supabase import Client, create_client

from .config import Settings, get_settings

_supabase_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


def get_db(settings: Annotated[Settings, Depends(get_settings)]) -> Client:
    """FastAPI dependency for Supabase client."""
    return get_supabase_client(settings)


def get_store(db: Annotated[Client, Depends(get_db)]) -> MarketplaceStore:
    """FastAPI dependency for the marketplace store."""
    return SupabaseMarketplaceStore(db)


def get_billing(db: Annotated[Client, Depends(get_db)]) -> BillingClient:
    """FastAPI dependency for provider balance lookups."""
    return SupabaseBilling(db)


def get_marketplace_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MarketplaceConfig:
    return MarketplaceConfig(
        commission_rate=settings.commission_rate,
        max_notes_length=settings.max_notes_length,
    )


# Type aliases for dependency injection
Database = Annotated[Client, Depends(get_db)]
Store = Annotated[MarketplaceStore, Depends(get_store)]
Billing = Annotated[BillingClient, Depends(get_billing)]
Marketplace = Annotated[MarketplaceConfig, Depends(get_marketplace_config)]


# =============================================================================
# Table Names
# =============================================================================

JOBS_TABLE = "job_listings"
BIDS_TABLE = "bids"
PROFILES_TABLE = "profiles"
CONVERSATIONS_TABLE = "conversations"
