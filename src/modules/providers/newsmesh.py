import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from src.modules.news_search.errors import ProviderError
from src.modules.news_search.schemas import Facet, NewsMode
from src.modules.providers.contracts import SearchProvider
from src.modules.providers.normalize import detect_article_type, normalize_title
from src.modules.providers.schemas import ArticleRecord
from src.modules.sources.models import SourceRegistry, extract_domain

logger = logging.getLogger(__name__)

BASE_URL = "https://api.newsmesh.co/v1"
RESULT_LIMIT = 25
REQUEST_TIMEOUT = 5.0

CATEGORIES = (
    "politics", "technology", "business", "health", "entertainment",
    "sports", "science", "lifestyle", "environment", "world",
)
INTL_SOURCE_COUNTRIES = "gb,fr,de,au,jp,in,ng,br,ae,kr,il,za,ca,it,sg"


class NewsMeshProvider(SearchProvider):
    """Wire-style keyword search. Records carry a short description only."""

    name = "newsmesh"
    needs_extraction = True

    def __init__(
        self,
        api_key: str,
        sources: SourceRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._sources = sources or SourceRegistry()
        self._client = client or httpx.AsyncClient()
        self._timeout = timeout

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── HTTP layer ──────────────────────────────────────────────

    async def _get(self, endpoint: str, params: dict[str, str]) -> list[ArticleRecord]:
        try:
            response = await self._client.get(
                f"{BASE_URL}/{endpoint}",
                params={"apiKey": self._api_key, "limit": str(RESULT_LIMIT), **params},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderError(self.name, f"timeout on /{endpoint}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(self.name, f"/{endpoint} failed: {exc}") from exc

        return [self._to_record(item) for item in payload.get("data") or []]

    # ── Orchestration ───────────────────────────────────────────

    async def search(
        self, facets: list[Facet], mode: NewsMode, window_days: int
    ) -> list[ArticleRecord]:
        if not self._api_key:
            logger.info("NewsMesh: no API key configured")
            return []

        calls = [self._search_facet(facet, idx == len(facets) - 1, window_days)
                 for idx, facet in enumerate(facets)]
        if mode == "survey":
            calls.append(self._get("trending", {}))
            calls.append(self._get("latest", {
                "category": "world,politics,business",
                "sourceCountry": INTL_SOURCE_COUNTRIES,
            }))

        results = await asyncio.gather(*calls, return_exceptions=True)

        records: list[ArticleRecord] = []
        failures = 0
        for result in results:
            if isinstance(result, BaseException):
                failures += 1
                logger.warning("NewsMesh call failed: %s", result)
                continue
            records.extend(result)

        if results and failures == len(results):
            raise ProviderError(self.name, f"all {failures} calls failed")
        return records

    async def _search_facet(
        self, facet: Facet, is_last: bool, window_days: int
    ) -> list[ArticleRecord]:
        from_date = (datetime.now(timezone.utc) - timedelta(days=window_days)).date()
        params = {
            "q": facet.query,
            "sortBy": "date" if is_last else "relevant",
            "from": from_date.isoformat(),
        }
        if facet.category:
            params["category"] = facet.category
        if facet.country:
            params["country"] = facet.country
        elif is_last:
            # The last facet is pinned to international outlets for diversity.
            params["sourceCountry"] = INTL_SOURCE_COUNTRIES
        return await self._get("search", params)

    # ── Normalization ───────────────────────────────────────────

    def _to_record(self, item: dict[str, Any]) -> ArticleRecord:
        url = item.get("link") or ""
        domain = extract_domain(url)
        source = self._sources.lookup(domain) or self._sources.lookup_by_name(item.get("source") or "")
        title = normalize_title(item.get("title") or "")
        author = item.get("author")
        if isinstance(author, list):
            author = author[0] if author else None

        return ArticleRecord(
            title=title,
            url=url,
            source_domain=domain,
            source_display_name=source.display_name if source else (item.get("source") or domain),
            source_tier=source.tier if source else 0,
            source_region=source.region if source else "Unknown",
            paywall_status=source.paywall if source else "free",
            article_type=detect_article_type(url, author, title),
            snippet=item.get("description") or "",
            author=author or None,
            published_at=item.get("published_date") or None,
            image_url=item.get("media_url") or None,
            origin_provider="newsmesh",
        )
