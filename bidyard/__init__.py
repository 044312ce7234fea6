"""
Bidyard - bid lifecycle and job-award coordination for a services marketplace.

Providers bid on customer jobs; the customer awards one bid and a
conversation opens between the two parties.
"""

from .marketplace import MarketplaceClient

try:
    from importlib.metadata import version

    __version__ = version("bidyard")
except Exception:
    __version__ = "0.0.0"

__all__ = ["MarketplaceClient"]
