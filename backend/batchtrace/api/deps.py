"""Shared route dependencies."""

from typing import Annotated

from fastapi import Depends

from batchtrace.db.session import DbSession
from batchtrace.services.allocation_engine import AllocationEngine
from batchtrace.services.metadata_resolver import MetadataResolver, ShopifyMetadataResolver
from batchtrace.services.tenant_credentials import TenantCredentialStore


def get_metadata_resolver(db: DbSession) -> MetadataResolver:
    """Shopify metafield resolver reading access tokens from the credential table."""
    return ShopifyMetadataResolver(TenantCredentialStore(db).get_access_token)


MetadataResolverDep = Annotated[MetadataResolver, Depends(get_metadata_resolver)]


def get_allocation_engine(db: DbSession, resolver: MetadataResolverDep) -> AllocationEngine:
    return AllocationEngine(db, resolver)


AllocationEngineDep = Annotated[AllocationEngine, Depends(get_allocation_engine)]
