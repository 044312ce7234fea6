"""Rate limiting for the Bidyard backend.

Bid routes are authenticated, so requests carrying a valid token are
limited per user (``user:<sub>``). Anything else falls back to the client
IP (``ip:<addr>``), where X-Forwarded-For is read only from trusted proxies.
"""

import ipaddress
import os

from fastapi import HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from .auth import AUTH_COOKIE_NAME, decode_token
from .config import get_settings
from .logging_config import get_logger

logger = get_logger("bidyard.rate_limit")

# Override with TRUSTED_PROXY_CIDRS (comma-separated)
DEFAULT_TRUSTED_CIDRS = ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "127.0.0.0/8", "::1/128")

# Per-route limits, applied per user
READ_LIMIT = "60/minute"
SUBMIT_LIMIT = "20/minute"
AWARD_LIMIT = "10/minute"

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


class TrustedProxies:
    """Proxy networks allowed to set X-Forwarded-For, parsed once on first use."""

    def __init__(self, raw: str | None = None):
        self._raw = raw
        self._networks: list[Network] | None = None

    @property
    def networks(self) -> list[Network]:
        if self._networks is None:
            raw = self._raw if self._raw is not None else os.environ.get("TRUSTED_PROXY_CIDRS", "")
            cidrs = [s.strip() for s in raw.split(",") if s.strip()] or list(DEFAULT_TRUSTED_CIDRS)
            self._networks = []
            for cidr in cidrs:
                try:
                    self._networks.append(ipaddress.ip_network(cidr, strict=False))
                except ValueError:
                    logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
        return self._networks

    def __contains__(self, ip_str: str) -> bool:
        try:
            addr = ipaddress.ip_address(ip_str)
        except ValueError:
            return False
        return any(addr in network for network in self.networks)


trusted_proxies = TrustedProxies()


def get_client_ip(request: Request) -> str:
    """Direct peer address, or the leftmost forwarded address behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if direct_ip in trusted_proxies:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return direct_ip


def _request_token(request: Request) -> str | None:
    auth = request.headers.get("authorization", "")
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return request.cookies.get(AUTH_COOKIE_NAME)


def rate_limit_key(request: Request) -> str:
    """``user:<sub>`` for a verified token, otherwise ``ip:<client ip>``."""
    token = _request_token(request)
    if token:
        try:
            user_id = decode_token(token, get_settings()).get("sub")
        except HTTPException:
            user_id = None
        if user_id:
            return f"user:{user_id}"
    return f"ip:{get_client_ip(request)}"


limiter = Limiter(key_func=rate_limit_key)
