import argparse
import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from src.config.settings import settings
from src.modules.background.service import BackgroundService
from src.modules.enrichment.hooks.news_composite import NewsCompositeHook
from src.modules.enrichment.registry import HookRegistry
from src.modules.enrichment.schemas import ExecutorOptions
from src.modules.enrichment.service import EnrichmentExecutor
from src.modules.extraction.service import build_extractor
from src.modules.extraction_cache.service import ExtractionCache
from src.modules.inference.service import InferenceService
from src.modules.news_search.classifier import QueryClassifier
from src.modules.news_search.service import NewsSearchEngine
from src.modules.providers.exa import ExaProvider
from src.modules.providers.newsmesh import NewsMeshProvider
from src.modules.source_discovery.service import SourceDiscovery
from src.modules.source_tracker.service import SourceTracker
from src.modules.sources.models import SourceRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan() -> AsyncIterator[NewsSearchEngine]:
    tracker = SourceTracker(settings.data_dir)
    cache = ExtractionCache(settings.data_dir)
    llm = InferenceService(settings.hf_api_token, settings.llm_model)
    sources = SourceRegistry()
    discovery = SourceDiscovery(settings.data_dir, llm, sources)
    tracker.open()
    cache.open()
    discovery.open()

    providers = [
        NewsMeshProvider(settings.newsmesh_api_key, sources, timeout=settings.provider_timeout),
        ExaProvider(settings.exa_api_key, sources, timeout=settings.provider_timeout),
    ]
    extractor = build_extractor(settings.diffbot_token, settings.extraction_soft_timeout)
    background = BackgroundService(tracker, cache, discovery)

    engine = NewsSearchEngine(
        tracker=tracker,
        cache=cache,
        providers=providers,
        classifier=QueryClassifier(llm),
        extractor=extractor,
        discovery=discovery,
        background=background,
        sources=sources,
        max_results=settings.max_results,
        hard_timeout=settings.extraction_hard_timeout,
    )

    await background.start()
    logger.info("News search services started")
    try:
        yield engine
    finally:
        await background.stop()
        for provider in providers:
            await provider.aclose()
        await extractor.aclose()
        discovery.close()
        cache.close()
        tracker.close()
        logger.info("News search services stopped")


async def run(query: str, max_results: int | None, verify: bool) -> dict:
    async with lifespan() as engine:
        result = await engine.search(query, max_results)
        output = json.loads(result.model_dump_json())

        if verify:
            registry = HookRegistry()
            registry.register(NewsCompositeHook())
            enriched, stats = await EnrichmentExecutor(registry).execute(
                result.candidates,
                ExecutorOptions(request_id=uuid.uuid4().hex[:8]),
            )
            output["verified"] = [c.verified for c in enriched]
            output["enrichment_stats"] = stats.model_dump()

    return output


def main() -> None:
    parser = argparse.ArgumentParser(description="Source-aware news search")
    parser.add_argument("query", help="free-text news query")
    parser.add_argument("--max-results", type=int, default=None)
    parser.add_argument("--verify", action="store_true", help="run the enrichment hooks")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    output = asyncio.run(run(args.query, args.max_results, args.verify))
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
