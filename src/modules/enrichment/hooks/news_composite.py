import logging

from src.modules.enrichment.contracts import EnrichmentHook
from src.modules.enrichment.schemas import Candidate, EnrichmentContext, EnrichmentData

logger = logging.getLogger(__name__)


class NewsCompositeHook(EnrichmentHook):
    """Pass-through verification for news candidates.

    News candidates arrive already enriched by the search engine, so this hook
    only checks that the carried payload identifies a real article.
    """

    name = "news_composite"
    domains = ["news"]
    priority = 95

    async def enrich(
        self, candidate: Candidate, context: EnrichmentContext
    ) -> EnrichmentData | None:
        payload = candidate.payload
        if not payload or not payload.get("url") or not payload.get("title"):
            logger.debug("No news payload carried by %r", candidate.name)
            return None
        return EnrichmentData(verified=True, source=self.name, data=dict(payload))

    async def health_check(self) -> bool:
        return True
