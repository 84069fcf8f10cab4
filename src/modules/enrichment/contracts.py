from abc import ABC, abstractmethod

from src.modules.enrichment.schemas import Candidate, EnrichmentContext, EnrichmentData


class EnrichmentHook(ABC):
    """Verifies a candidate against one third-party source.

    Subclasses may define ``async def health_check(self) -> bool``; hooks
    without one are reported healthy.
    """

    name: str
    domains: list[str]
    priority: int = 0

    @abstractmethod
    async def enrich(
        self, candidate: Candidate, context: EnrichmentContext
    ) -> EnrichmentData | None:
        """Return verified data, or ``None`` when the candidate could not be matched."""
