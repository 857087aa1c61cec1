"""Per-shop platform credentials."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from batchtrace.db.base import Base, CreatedAtMixin


class TenantCredential(Base, CreatedAtMixin):
    """Admin API access token for one shop.

    Rows are written by the OAuth installation flow, which lives outside this
    service; allocation only reads them for product metadata lookups.
    """

    __tablename__ = "tenant_credentials"

    id: Mapped[int] = mapped_column(primary_key=True)
    shop_domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    access_token: Mapped[str] = mapped_column(String(255), nullable=False)
