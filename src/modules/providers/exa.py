import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from src.modules.news_search.errors import ProviderError
from src.modules.news_search.schemas import Facet, NewsMode
from src.modules.providers.contracts import SearchProvider
from src.modules.providers.normalize import detect_article_type, normalize_title, reading_time
from src.modules.providers.schemas import ArticleRecord
from src.modules.sources.models import SourceRegistry, extract_domain

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.exa.ai/search"
RESULTS_PER_QUERY = 7
REQUEST_TIMEOUT = 5.0


class ExaProvider(SearchProvider):
    """Neural search. Finds articles rather than section pages and returns text."""

    name = "exa"
    needs_extraction = False

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

    async def search(
        self, facets: list[Facet], mode: NewsMode, window_days: int
    ) -> list[ArticleRecord]:
        if not self._api_key:
            logger.info("Exa: no API key configured")
            return []

        # Deep mode leans on neural search for niche opinion pieces.
        max_queries = 3 if mode == "deep" else 2
        start = datetime.now(timezone.utc) - timedelta(days=window_days)
        queries = [facet.query for facet in facets[:max_queries]]

        results = await asyncio.gather(
            *(self._search_query(query, start) for query in queries),
            return_exceptions=True,
        )

        records: list[ArticleRecord] = []
        failures = 0
        for query, result in zip(queries, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.warning("Exa search failed for %r: %s", query, result)
                continue
            records.extend(result)

        if results and failures == len(results):
            raise ProviderError(self.name, f"all {failures} queries failed")
        return records

    async def _search_query(self, query: str, start: datetime) -> list[ArticleRecord]:
        body = {
            "query": query,
            "type": "neural",
            "category": "news",
            "numResults": RESULTS_PER_QUERY,
            "startPublishedDate": start.isoformat(),
            "contents": {
                "text": {"maxCharacters": 1500},
                "highlights": {"numSentences": 3},
            },
        }
        try:
            response = await self._client.post(
                SEARCH_URL,
                json=body,
                headers={"x-api-key": self._api_key},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderError(self.name, f"timeout for {query!r}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(self.name, f"search failed for {query!r}: {exc}") from exc

        return [self._to_record(item) for item in payload.get("results") or []]

    def _to_record(self, item: dict[str, Any]) -> ArticleRecord:
        url = item.get("url") or ""
        domain = extract_domain(url)
        source = self._sources.lookup(domain)
        text = item.get("text") or ""
        highlights = item.get("highlights") or []
        snippet = highlights[0].replace("\n", " ").strip() if highlights else text[:300]
        word_count = round(len(text) / 5)
        title = normalize_title(item.get("title") or "")
        author = item.get("author") or None

        return ArticleRecord(
            title=title,
            url=url,
            source_domain=domain,
            source_display_name=source.display_name if source else domain,
            source_tier=source.tier if source else 0,
            source_region=source.region if source else "Unknown",
            paywall_status=source.paywall if source else "free",
            article_type=detect_article_type(url, author, title),
            snippet=snippet,
            author=author,
            published_at=item.get("publishedDate") or None,
            word_count=word_count,
            reading_time_minutes=reading_time(word_count),
            origin_provider="exa",
        )
