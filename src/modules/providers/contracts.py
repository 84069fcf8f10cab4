from abc import ABC, abstractmethod

from src.modules.news_search.schemas import Facet, NewsMode
from src.modules.providers.schemas import ArticleRecord


class SearchProvider(ABC):
    """One upstream news search API.

    ``needs_extraction`` marks providers whose records arrive with short
    descriptions only, so the engine must fetch the article body before the
    record is usable. Providers that return real text snippets are quality
    filtered instead.
    """

    name: str
    needs_extraction: bool = False

    @abstractmethod
    async def search(
        self, facets: list[Facet], mode: NewsMode, window_days: int
    ) -> list[ArticleRecord]:
        """Return normalized records. May raise ``ProviderError``."""

    async def aclose(self) -> None:
        return None
