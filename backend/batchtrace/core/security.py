"""Security utilities: tenant JWT tokens and webhook signature checks."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from batchtrace.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with a unique JTI."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_tenant_token(tenant: str, expires_delta: timedelta | None = None) -> str:
    """Issue a token for the direct order API scoped to one shop."""
    return create_access_token({"sub": tenant, "tenant": tenant}, expires_delta)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Returns None when invalid or expired."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require": ["exp"]},
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None


def compute_webhook_hmac(body: bytes, secret: str) -> str:
    """Base64-encoded HMAC-SHA256 of the raw request body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_signature(body: bytes, signature: str | None, secret: str | None = None) -> bool:
    """Verify a Shopify webhook HMAC header against the raw body."""
    secret = settings.shopify_api_secret if secret is None else secret
    if not secret:
        logger.warning("Shopify webhook secret not set; skipping verification")
        return True
    if not signature:
        return False
    return hmac.compare_digest(compute_webhook_hmac(body, secret), signature)
