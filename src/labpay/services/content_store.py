"""Webflow CMS client with caching and retry.

All reads go through ContentStoreClient._fetch, which retries transport
errors, 5xx and 429 responses with exponential backoff and fails fast on
other client errors. Item and slug lookups are cached in an injected
ListingCache; a cache hit never touches the network.
"""

import time
from typing import Any, Callable

import httpx

from labpay.models.errors import (
    NotFoundError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from labpay.services.cache import ListingCache, NullCache
from labpay.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.webflow.com/v2"


def normalize_item(data: Any) -> dict[str, Any]:
    """Flatten the two CMS response shapes into {id, slug, fieldData}.

    The single-item endpoint may wrap the item as {"item": {...}}; list
    endpoints return bare items.
    """
    if not isinstance(data, dict):
        return {"id": None, "slug": None, "fieldData": {}}
    inner = data.get("item") if isinstance(data.get("item"), dict) else data
    field_data = inner.get("fieldData")
    return {
        "id": inner.get("id"),
        "slug": inner.get("slug"),
        "fieldData": field_data if isinstance(field_data, dict) else {},
    }


class ContentStoreClient:
    """Read-only client for CMS collections.

    Usage:
        client = ContentStoreClient(token="...", cache=TTLCache(300))
        item = client.get_item(collection_id, item_id)
        item = client.find_item_by_slug(collection_id, "spring-lab")
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        cache: ListingCache | None = None,
        locale_id: str | None = None,
        page_size: int = 100,
        max_scan_items: int = 2000,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            token: Bearer token for the CMS API
            base_url: API root
            timeout: Per-attempt timeout in seconds
            max_attempts: Total attempts for retryable failures
            retry_base_delay: First backoff delay; doubles on each retry
            cache: Cache for item and slug lookups (NullCache if omitted)
            locale_id: Optional CMS locale passed on list calls
            page_size: Items per list page
            max_scan_items: Cap on items scanned by a slug lookup
            transport: httpx transport override (tests)
            sleep: Backoff sleep function (tests)
        """
        self._client = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        self._max_attempts = max_attempts
        self._retry_base_delay = retry_base_delay
        self._cache: ListingCache = cache if cache is not None else NullCache()
        self._locale_id = locale_id
        self._page_size = page_size
        self._max_scan_items = max_scan_items
        self._sleep = sleep

    @property
    def cache(self) -> ListingCache:
        return self._cache

    def close(self) -> None:
        self._client.close()

    def _backoff(self, attempt: int) -> float:
        return self._retry_base_delay * (2 ** (attempt - 1))

    def _fetch(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a CMS path with retry.

        Raises:
            UpstreamRejectedError: 4xx other than 429 (carries status_code).
            UpstreamUnavailableError: Retries exhausted on 5xx/429/transport errors.
        """
        last_error = ""
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = self._client.get(path, params=params)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                if attempt < self._max_attempts:
                    delay = self._backoff(attempt)
                    logger.warning(
                        "CMS network error, retrying: path=%s attempt=%d backoff=%.2fs error=%s",
                        path,
                        attempt,
                        delay,
                        last_error,
                    )
                    self._sleep(delay)
                    continue
                break

            status = response.status_code
            if status < 400:
                try:
                    data = response.json()
                except ValueError as e:
                    raise UpstreamRejectedError(
                        f"CMS returned invalid JSON for {path}",
                        status_code=status,
                    ) from e
                return data if isinstance(data, dict) else {}

            if 400 <= status < 500 and status != 429:
                raise UpstreamRejectedError(
                    f"CMS API error: {status} {response.text[:200]}",
                    status_code=status,
                )

            last_error = f"HTTP {status}"
            if attempt < self._max_attempts:
                delay = self._backoff(attempt)
                logger.warning(
                    "CMS API error, retrying: path=%s status=%d attempt=%d backoff=%.2fs",
                    path,
                    status,
                    attempt,
                    delay,
                )
                self._sleep(delay)

        raise UpstreamUnavailableError(
            f"CMS unavailable after {self._max_attempts} attempts ({last_error})"
        )

    def get_item(
        self,
        collection_id: str,
        item_id: str,
        *,
        use_cache: bool = True,
    ) -> dict[str, Any]:
        """Fetch a single item by ID.

        Returns:
            Normalized item {id, slug, fieldData}.

        Raises:
            NotFoundError: The CMS has no such item.
        """
        cache_key = f"item:{collection_id}:{item_id}"
        if use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("CMS cache hit: %s", cache_key)
                return cached

        try:
            data = self._fetch(f"/collections/{collection_id}/items/{item_id}")
        except UpstreamRejectedError as e:
            if e.status_code == 404:
                raise NotFoundError(f"Item {item_id} not found") from e
            raise

        item = normalize_item(data)
        if not item["id"]:
            raise NotFoundError(f"Item {item_id} not found")

        if use_cache:
            self._cache.set(cache_key, item)
        return item

    def list_items(
        self,
        collection_id: str,
        *,
        max_items: int | None = None,
        predicate: Callable[[dict[str, Any]], bool] | None = None,
    ) -> list[dict[str, Any]]:
        """Page through a collection.

        Scanning stops at a short page, after max_items matches, or once
        max_scan_items items have been read, whichever comes first.

        Args:
            collection_id: CMS collection ID
            max_items: Stop after this many matching items
            predicate: Keep only items for which this returns True
        """
        matches: list[dict[str, Any]] = []
        offset = 0
        while offset < self._max_scan_items:
            params: dict[str, Any] = {"limit": self._page_size, "offset": offset}
            if self._locale_id:
                params["cmsLocaleId"] = self._locale_id

            data = self._fetch(f"/collections/{collection_id}/items", params=params)
            page = data.get("items") or []

            for raw in page:
                item = normalize_item(raw)
                if predicate is None or predicate(item):
                    matches.append(item)
                    if max_items is not None and len(matches) >= max_items:
                        return matches

            if len(page) < self._page_size:
                break
            offset += self._page_size

        return matches

    def find_item_by_slug(self, collection_id: str, slug: str) -> dict[str, Any] | None:
        """Find an item by slug with a linear scan.

        The CMS has no slug index, so this is O(n) in collection size.
        Only hits are cached.
        """
        cache_key = f"slug:{collection_id}:{slug}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("CMS slug cache hit: %s", cache_key)
            return cached

        found = self.list_items(
            collection_id,
            max_items=1,
            predicate=lambda item: item.get("slug") == slug,
        )
        if not found:
            return None

        self._cache.set(cache_key, found[0])
        return found[0]

    def clear_cache(self) -> None:
        """Drop all cached CMS items."""
        self._cache.clear()
        logger.info("CMS cache cleared")
