import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from src.modules.news_search.schemas import (
    ArticleCluster,
    NewsCandidate,
    QueryClassification,
)
from src.modules.providers.schemas import ArticleRecord

logger = logging.getLogger(__name__)


@dataclass
class SearchState:
    """Everything one search call accumulates while its steps run."""

    query: str
    max_results: int
    classification: QueryClassification | None = None
    articles: list[ArticleRecord] = field(default_factory=list)
    selected: list[ArticleRecord] = field(default_factory=list)
    clusters: list[ArticleCluster] = field(default_factory=list)
    candidates: list[NewsCandidate] = field(default_factory=list)


SearchStep = Callable[[SearchState], Awaitable[None]]


class SearchComposer:
    """Manages an ordered sequence of async search steps over a shared state."""

    def __init__(self) -> None:
        self._steps: list[tuple[str, SearchStep]] = []

    def add_step(self, name: str, step: SearchStep) -> None:
        self._steps.append((name, step))

    async def run(self, state: SearchState) -> SearchState:
        logger.info("Search started for %r (%d steps)", state.query, len(self._steps))
        for name, step in self._steps:
            started = time.perf_counter()
            await step(state)
            logger.info(
                "Completed step: %s (%d articles, %.0fms)",
                name, len(state.articles), (time.perf_counter() - started) * 1000,
            )
        logger.info("Search finished")
        return state
