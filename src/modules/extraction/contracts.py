from abc import ABC, abstractmethod

from src.modules.extraction.schemas import ExtractionResult


class ArticleExtractor(ABC):
    """Fetches the body of a single article URL.

    Implementations never raise for per-URL failures; the failure kind is
    reported through ``ExtractionResult.outcome`` so the caller can feed it
    to the reliability ledger.
    """

    name: str

    @abstractmethod
    async def extract(self, url: str) -> ExtractionResult: ...

    async def aclose(self) -> None:
        return None
