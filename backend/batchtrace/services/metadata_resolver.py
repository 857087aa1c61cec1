"""Product metadata hints used when a batch has to be synthesized.

Hints come from the commerce platform's product metafields: shelf life in
days and a default batch quantity. Both are optional. A resolver raises
``MetadataResolverUnavailable`` only when the remote side could not answer at
all; a product without hints is a normal, empty result.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from batchtrace.core.config import settings
from batchtrace.core.exceptions import MetadataResolverUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductHints:
    shelf_life_days: Optional[int] = None
    default_batch_quantity: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.shelf_life_days is None and self.default_batch_quantity is None


def _positive_int(value: Any) -> Optional[int]:
    """Coerce a metafield value to a positive int, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class MetadataResolver(ABC):
    """Source of product hints for a tenant's product."""

    name = "base"

    @abstractmethod
    def resolve_product_hints(self, tenant: str, external_product_id: str) -> ProductHints:
        """Return hints for the product, raising MetadataResolverUnavailable on outage."""


class NullMetadataResolver(MetadataResolver):
    """Resolver that never knows anything."""

    name = "null"

    def resolve_product_hints(self, tenant: str, external_product_id: str) -> ProductHints:
        return ProductHints()


class StaticMetadataResolver(MetadataResolver):
    """In-memory hints keyed by external product id."""

    name = "static"

    def __init__(self, hints: Optional[Dict[str, ProductHints]] = None):
        self.hints = dict(hints or {})
        self.calls: List[tuple] = []

    def resolve_product_hints(self, tenant: str, external_product_id: str) -> ProductHints:
        self.calls.append((tenant, external_product_id))
        return self.hints.get(external_product_id, ProductHints())


class ShopifyMetadataResolver(MetadataResolver):
    """Reads hints from Shopify Admin API product metafields.

    Timeouts, transport errors and 5xx responses are retried with linear
    backoff, then reported as unavailable. Auth failures and missing
    credentials are unavailable immediately. A 404 or any other client error
    means the product carries no hints.
    """

    name = "shopify"

    def __init__(
        self,
        credential_lookup: Callable[[str], Optional[str]],
        *,
        client: Optional[httpx.Client] = None,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._credential_lookup = credential_lookup
        self._client = client
        self.api_version = api_version or settings.shopify_api_version
        self.namespace = namespace or settings.shopify_metafield_namespace
        self.timeout = timeout if timeout is not None else settings.metadata_timeout_seconds
        self.max_attempts = max_attempts or settings.metadata_max_attempts
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else settings.metadata_retry_backoff_seconds
        )
        self._sleep = sleep

    def _metafields_url(self, shop_domain: str, external_product_id: str) -> str:
        return (
            f"https://{shop_domain}/admin/api/{self.api_version}"
            f"/products/{quote(external_product_id, safe='')}/metafields.json"
        )

    def _get(self, url: str, headers: Dict[str, str], params: Dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, headers=headers, params=params, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url, headers=headers, params=params)

    def resolve_product_hints(self, tenant: str, external_product_id: str) -> ProductHints:
        access_token = self._credential_lookup(tenant)
        if not access_token:
            raise MetadataResolverUnavailable(f"No platform credentials stored for shop {tenant}")

        url = self._metafields_url(tenant, external_product_id)
        headers = {"X-Shopify-Access-Token": access_token, "Accept": "application/json"}
        params = {"namespace": self.namespace}

        last_error = "no attempt made"
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._get(url, headers, params)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"Metafield lookup for {tenant}/{external_product_id} failed "
                    f"(attempt {attempt}/{self.max_attempts}): {last_error}"
                )
                self._backoff(attempt)
                continue

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    f"Metafield lookup for {tenant}/{external_product_id} returned "
                    f"{response.status_code} (attempt {attempt}/{self.max_attempts})"
                )
                self._backoff(attempt)
                continue
            if response.status_code in (401, 403):
                raise MetadataResolverUnavailable(
                    f"Shop {tenant} rejected metafield access (HTTP {response.status_code})"
                )
            if response.status_code >= 400:
                logger.info(
                    f"No metafields for {tenant}/{external_product_id} "
                    f"(HTTP {response.status_code})"
                )
                return ProductHints()

            return self._parse(response, external_product_id)

        raise MetadataResolverUnavailable(
            f"Metafield lookup for {tenant}/{external_product_id} failed after "
            f"{self.max_attempts} attempts: {last_error}"
        )

    def _backoff(self, attempt: int) -> None:
        if attempt < self.max_attempts and self.retry_backoff > 0:
            self._sleep(self.retry_backoff * attempt)

    def _parse(self, response: httpx.Response, external_product_id: str) -> ProductHints:
        try:
            metafields = response.json().get("metafields") or []
        except (ValueError, AttributeError):
            logger.warning(f"Malformed metafield response for product {external_product_id}")
            return ProductHints()

        values: Dict[str, Any] = {}
        for metafield in metafields:
            if not isinstance(metafield, dict):
                continue
            if metafield.get("namespace", self.namespace) != self.namespace:
                continue
            values[metafield.get("key")] = metafield.get("value")

        return ProductHints(
            shelf_life_days=_positive_int(values.get(settings.shopify_shelf_life_key)),
            default_batch_quantity=_positive_int(
                values.get(settings.shopify_default_batch_quantity_key)
            ),
        )
