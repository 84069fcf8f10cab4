from typing import Any, Literal

from pydantic import BaseModel, Field

from src.modules.enrichment.schemas import Candidate
from src.modules.providers.schemas import ArticleRecord

NewsMode = Literal["survey", "thematic", "deep"]
Recency = Literal["breaking", "recent", "general"]

FACET_COUNT = 4

DATE_WINDOW_DAYS: dict[str, int] = {
    "breaking": 2,
    "recent": 7,
    "general": 30,
}


class Facet(BaseModel):
    """One diversified sub-query produced by the classifier."""

    query: str
    category: str | None = None
    country: str | None = None  # ISO 3166-1 alpha-2, lowercase


class QueryClassification(BaseModel):
    mode: NewsMode = "thematic"
    recency: Recency = "general"
    facets: list[Facet] = Field(default_factory=list)

    @property
    def window_days(self) -> int:
        return DATE_WINDOW_DAYS[self.recency]

    @property
    def queries(self) -> list[str]:
        return [facet.query for facet in self.facets]


class ArticleCluster(BaseModel):
    """Articles that share enough topic words to be the same story."""

    articles: list[ArticleRecord] = Field(default_factory=list)
    keywords: set[str] = Field(default_factory=set)


class NewsCandidate(Candidate):
    """A selected article in the generic candidate shape, payload attached."""

    enrichment_hooks: list[str] = Field(default_factory=lambda: ["news_composite"])
    payload: dict[str, Any] | None = Field(default_factory=dict)


class NewsSearchResult(BaseModel):
    mode: NewsMode
    candidates: list[NewsCandidate] = Field(default_factory=list)
    clusters: list[ArticleCluster] = Field(default_factory=list)

    @classmethod
    def empty(cls, mode: NewsMode = "thematic") -> "NewsSearchResult":
        return cls(mode=mode)
