"""Shared rate limiter instance for use across route files."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from batchtrace.core.config import settings


def get_shop_or_ip(request: Request) -> str:
    """Rate limit webhooks per shop domain, everything else per client IP."""
    shop = request.headers.get("X-Shopify-Shop-Domain")
    if shop:
        return f"shop:{shop}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
webhook_limiter = Limiter(key_func=get_shop_or_ip, enabled=settings.rate_limit_enabled)
