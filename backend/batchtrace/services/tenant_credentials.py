"""Lookup of stored per-shop platform credentials."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from batchtrace.models.tenant import TenantCredential


class TenantCredentialStore:
    def __init__(self, db: Session):
        self.db = db

    def get_access_token(self, shop_domain: str) -> Optional[str]:
        if not shop_domain:
            return None
        return self.db.execute(
            select(TenantCredential.access_token).where(
                TenantCredential.shop_domain == shop_domain.lower()
            )
        ).scalar_one_or_none()

    def save(self, shop_domain: str, access_token: str) -> TenantCredential:
        """Insert or replace the token for a shop."""
        shop_domain = shop_domain.lower()
        credential = self.db.execute(
            select(TenantCredential).where(TenantCredential.shop_domain == shop_domain)
        ).scalar_one_or_none()
        if credential is None:
            credential = TenantCredential(shop_domain=shop_domain, access_token=access_token)
            self.db.add(credential)
        else:
            credential.access_token = access_token
        self.db.flush()
        return credential
