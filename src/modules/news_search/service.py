import asyncio
import logging
from typing import TYPE_CHECKING, Any

from src.modules.extraction.contracts import ArticleExtractor
from src.modules.extraction.schemas import ExtractionResult
from src.modules.extraction_cache.schemas import ExtractedArticle
from src.modules.extraction_cache.service import ExtractionCache, normalize_url
from src.modules.news_search.classifier import QueryClassifier
from src.modules.news_search.composer import SearchComposer, SearchState
from src.modules.news_search.dedup import deduplicate
from src.modules.news_search.quality import EXTRACTED_MIN_SNIPPET, is_nav_junk, min_snippet_length
from src.modules.news_search.schemas import (
    DATE_WINDOW_DAYS,
    Facet,
    NewsCandidate,
    NewsMode,
    NewsSearchResult,
)
from src.modules.news_search.scoring import cluster_by_topic, select_articles
from src.modules.providers.contracts import SearchProvider
from src.modules.providers.normalize import reading_time
from src.modules.providers.schemas import ArticleRecord
from src.modules.source_tracker.schemas import Outcome
from src.modules.source_tracker.service import SourceTracker
from src.modules.sources.models import SourceRegistry, extract_domain

if TYPE_CHECKING:
    from src.modules.background.service import BackgroundService
    from src.modules.source_discovery.service import SourceDiscovery

logger = logging.getLogger(__name__)

STARVATION_THRESHOLD = 10
WIDE_WINDOW_DAYS = DATE_WINDOW_DAYS["general"]
WIDEN_FACETS = 2

MAX_EXTRACTIONS = 20
EXTRACTION_BATCH_SIZE = 6
EXTRACTION_BATCH_DELAY = 0.5
HARD_TIMEOUT = 6.0
BACKFILL_CHARS = 1500


def _discard_result(task: "asyncio.Task[Any]") -> None:
    # Retrieve the straggler's exception so the loop does not warn about it.
    if not task.cancelled():
        task.exception()


class NewsSearchEngine:
    """Source-aware news aggregation.

    One ``search()`` call classifies the query, fans out to every provider,
    filters, extracts, deduplicates and ranks the results. The ledger and
    extraction cache are the only state shared between calls; both are saved
    at the end of the extraction step.
    """

    def __init__(
        self,
        tracker: SourceTracker,
        cache: ExtractionCache,
        providers: list[SearchProvider],
        classifier: QueryClassifier,
        extractor: ArticleExtractor | None = None,
        discovery: "SourceDiscovery | None" = None,
        background: "BackgroundService | None" = None,
        sources: SourceRegistry | None = None,
        max_results: int = 10,
        hard_timeout: float = HARD_TIMEOUT,
        batch_delay: float = EXTRACTION_BATCH_DELAY,
    ) -> None:
        self._tracker = tracker
        self._cache = cache
        self._providers = providers
        self._classifier = classifier
        self._extractor = extractor
        self._discovery = discovery
        self._background = background
        self._sources = sources or SourceRegistry()
        self._max_results = max_results
        self._hard_timeout = hard_timeout
        self._batch_delay = batch_delay

        self._composer = SearchComposer()
        self._composer.add_step("classify", self._classify)
        self._composer.add_step("gather", self._gather)
        self._composer.add_step("relevance", self._relevance)
        self._composer.add_step("widen", self._widen)
        self._composer.add_step("select", self._select)
        self._composer.add_step("cluster", self._cluster)
        self._composer.add_step("assemble", self._assemble)

    # ── Orchestration ───────────────────────────────────────────

    async def search(self, query: str, max_results: int | None = None) -> NewsSearchResult:
        state = SearchState(query=query, max_results=max_results or self._max_results)
        self._cache.reset_stats()
        try:
            await self._composer.run(state)
        except Exception:
            logger.exception("News search failed for %r", query)
            mode: NewsMode = state.classification.mode if state.classification else "thematic"
            return NewsSearchResult.empty(mode)
        finally:
            self._after_search()

        logger.info(
            "Final: %d candidates, %d topic clusters",
            len(state.candidates), len(state.clusters),
        )
        return NewsSearchResult(
            mode=state.classification.mode,
            candidates=state.candidates,
            clusters=state.clusters,
        )

    def _after_search(self) -> None:
        if self._discovery is None:
            return
        self._discovery.save()
        if self._background is not None and self._discovery.pending_count() > 0:
            self._background.enqueue("source_discovery", self._discovery.evaluate_candidates)

    # ── Steps ───────────────────────────────────────────────────

    async def _classify(self, state: SearchState) -> None:
        state.classification = await self._classifier.classify(state.query)

    async def _gather(self, state: SearchState) -> None:
        classification = state.classification
        state.articles = await self._collect(
            classification.facets, classification.mode, classification.window_days
        )
        logger.info("After dedup: %d unique articles", len(state.articles))

    async def _relevance(self, state: SearchState) -> None:
        before = len(state.articles)
        state.articles = await self._classifier.filter_by_relevance(state.articles, state.query)
        logger.info("After relevance filter: %d/%d kept", len(state.articles), before)

    async def _widen(self, state: SearchState) -> None:
        classification = state.classification
        if len(state.articles) >= STARVATION_THRESHOLD:
            return
        if classification.window_days >= WIDE_WINDOW_DAYS:
            return

        logger.info("Yield too low after filter, widening date window to %d days", WIDE_WINDOW_DAYS)
        wider = await self._collect(
            classification.facets[:WIDEN_FACETS], classification.mode, WIDE_WINDOW_DAYS
        )
        merged = deduplicate(state.articles + wider)
        state.articles = await self._classifier.filter_by_relevance(merged, state.query)
        logger.info("After wider pass: %d articles", len(state.articles))

    async def _select(self, state: SearchState) -> None:
        state.selected = select_articles(
            state.articles,
            state.classification.mode,
            state.max_results,
            penalty=self._tracker.score_penalty,
        )

    async def _cluster(self, state: SearchState) -> None:
        state.clusters = cluster_by_topic(state.selected)

    async def _assemble(self, state: SearchState) -> None:
        state.candidates = [self._to_candidate(a) for a in state.selected]

    # ── Search + filter + extract ───────────────────────────────

    async def _collect(
        self, facets: list[Facet], mode: NewsMode, window_days: int
    ) -> list[ArticleRecord]:
        results = await asyncio.gather(
            *(p.search(facets, mode, window_days) for p in self._providers),
            return_exceptions=True,
        )

        snippet_records: list[ArticleRecord] = []
        wire_records: list[ArticleRecord] = []
        for provider, result in zip(self._providers, results):
            if isinstance(result, BaseException):
                logger.warning("Provider %s failed: %s", provider.name, result)
                continue
            self._record_unknown_sources(result)
            if provider.needs_extraction:
                wire_records.extend(result)
            else:
                snippet_records.extend(result)

        kept = self._quality_filter(snippet_records, mode)
        shipped = await self._extract_all(wire_records)
        logger.info(
            "Raw: %d snippet records kept, %d extracted records kept (window: %dd)",
            len(kept), len(shipped), window_days,
        )
        return deduplicate(shipped + kept)

    def _record_unknown_sources(self, records: list[ArticleRecord]) -> None:
        if self._discovery is None:
            return
        for record in records:
            domain = record.source_domain
            if domain and record.title and self._sources.lookup(domain) is None:
                self._discovery.record_unknown(domain, record.title, record.snippet, record.url)

    def _quality_filter(self, records: list[ArticleRecord], mode: NewsMode) -> list[ArticleRecord]:
        minimum = min_snippet_length(mode)
        kept: list[ArticleRecord] = []
        for record in records:
            if len(record.snippet) < minimum or is_nav_junk(record.snippet):
                self._tracker.record(record.source_domain, Outcome.JUNK)
                continue
            self._tracker.record(record.source_domain, Outcome.SUCCESS)
            kept.append(record)

        dropped = len(records) - len(kept)
        if dropped:
            logger.info("Quality filter dropped %d/%d records", dropped, len(records))
        return kept

    async def _extract_all(self, records: list[ArticleRecord]) -> list[ArticleRecord]:
        if not records:
            return []
        if self._extractor is None:
            return [r for r in records if len(r.snippet) >= EXTRACTED_MIN_SNIPPET]

        targets: dict[str, list[ArticleRecord]] = {}
        for record in records:
            if not record.url:
                continue
            key = normalize_url(record.url)
            if key in targets:
                targets[key].append(record)
                continue
            if len(targets) >= MAX_EXTRACTIONS:
                continue
            if self._tracker.should_skip(extract_domain(record.url)):
                logger.debug("Skipping blocked domain: %s", record.source_domain)
                continue
            targets[key] = [record]

        urls = [group[0].url for group in targets.values()]
        groups = list(targets.values())
        logger.info("Extracting %d articles", len(urls))

        enriched = 0
        for start in range(0, len(urls), EXTRACTION_BATCH_SIZE):
            if start:
                await asyncio.sleep(self._batch_delay)
            batch = urls[start:start + EXTRACTION_BATCH_SIZE]
            extracted = await asyncio.gather(*(self._extract_one(url) for url in batch))
            for group, article in zip(groups[start:start + EXTRACTION_BATCH_SIZE], extracted):
                if article is None or not article.text:
                    continue
                for record in group:
                    self._backfill(record, article)
                enriched += 1

        stats = self._cache.stats()
        logger.info(
            "Enriched %d/%d (cache: %d hits, %d misses, %d cached)",
            enriched, len(urls), stats.hits, stats.misses, stats.total,
        )
        self._tracker.save()
        self._cache.save()

        shipped = [r for r in records if len(r.snippet) >= EXTRACTED_MIN_SNIPPET]
        if len(shipped) < len(records):
            logger.info("Dropped %d records without enough extracted text", len(records) - len(shipped))
        return shipped

    async def _extract_one(self, url: str) -> ExtractedArticle | None:
        cached = self._cache.get(url)
        if not ExtractionCache.is_miss(cached):
            return cached

        domain = extract_domain(url)
        task = asyncio.ensure_future(self._extractor.extract(url))
        done, _ = await asyncio.wait({task}, timeout=self._hard_timeout)
        if not done:
            # Hard timeouts are not cached; the URL may well work next time.
            logger.info("Hard timeout for %s", domain)
            task.cancel()
            task.add_done_callback(_discard_result)
            self._tracker.record(domain, Outcome.TIMEOUT)
            return None

        try:
            result = task.result()
        except Exception as exc:
            logger.warning("Extractor raised for %s: %s", domain, exc)
            result = ExtractionResult(outcome=Outcome.NO_TEXT)

        self._tracker.record(domain, result.outcome)
        article = result.article if result.ok else None
        self._cache.set(url, article)
        return article

    @staticmethod
    def _backfill(record: ArticleRecord, article: ExtractedArticle) -> None:
        record.snippet = article.text[:BACKFILL_CHARS]
        if article.author and not record.author:
            record.author = article.author
        if article.image_url and not record.image_url:
            record.image_url = article.image_url
        if article.date and not record.published_at:
            record.published_at = article.date
        if article.word_count:
            record.word_count = article.word_count
            record.reading_time_minutes = reading_time(article.word_count)

    # ── Assembly ────────────────────────────────────────────────

    @staticmethod
    def _to_candidate(article: ArticleRecord) -> NewsCandidate:
        hint = f"{article.title}\n---\n{article.snippet}" if article.snippet else article.title
        return NewsCandidate(
            name=article.title,
            identifiers={
                "source": article.source_domain,
                "date": article.published_at or "",
                "author": article.author or "",
                "url": article.url,
            },
            search_hint=hint,
            payload={
                "title": article.title,
                "author": article.author,
                "published_at": article.published_at,
                "source": article.source_display_name,
                "source_domain": article.source_domain,
                "source_tier": article.source_tier,
                "source_region": article.source_region,
                "paywall": article.paywall_status,
                "article_type": article.article_type,
                "image_url": article.image_url,
                "url": article.url,
                "summary": article.snippet,
                "word_count": article.word_count,
                "reading_time_minutes": article.reading_time_minutes,
                "is_live": article.is_live,
                "api_source": article.origin_provider,
            },
        )
