"""API routes."""

from .bids import router as bids_router

__all__ = [
    "bids_router",
]
