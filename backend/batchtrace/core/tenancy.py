"""Tenant resolution for the direct order API.

Bearer-token verification is the boundary's job; the core only ever receives
the resulting tenant as an explicit parameter.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from batchtrace.core.security import decode_access_token


class TenantContext:
    """Decoded tenant identity.

    Attributes:
        tenant: The shop domain whose credentials are used for metadata lookups.
        subject: The token subject (defaults to the tenant).
    """

    def __init__(self, tenant: str, subject: str = ""):
        self.tenant = tenant
        self.subject = subject or tenant

    def __repr__(self) -> str:
        return f"TenantContext(tenant={self.tenant!r})"


async def get_current_tenant(request: Request) -> TenantContext:
    """Get the tenant from the ``Authorization: Bearer <token>`` header."""
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tenant = payload.get("tenant")
    if not tenant:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    return TenantContext(tenant=str(tenant), subject=str(payload.get("sub") or ""))


CurrentTenant = Annotated[TenantContext, Depends(get_current_tenant)]
