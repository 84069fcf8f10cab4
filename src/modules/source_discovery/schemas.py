from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SourceCategory = Literal["general", "specialty", "regional", "wire"]


class ArticleSighting(BaseModel):
    title: str
    snippet: str
    url: str
    seen_at: datetime


class CandidateDomain(BaseModel):
    """An outlet seen in results but not yet in the source registry."""

    domain: str
    sightings: list[ArticleSighting] = Field(default_factory=list)
    first_seen: datetime
    last_seen: datetime


class RubricScores(BaseModel):
    impartiality: float
    accuracy: float
    depth: float
    expertise: float
    global_perspective: float = Field(alias="globalPerspective")
    clarity: float
    transparency: float
    timeliness: float

    model_config = ConfigDict(populate_by_name=True)

    @property
    def average(self) -> float:
        values = list(self.model_dump().values())
        return sum(values) / len(values)


class SourceScore(BaseModel):
    domain: str
    scores: RubricScores
    average_score: float
    category: SourceCategory = "general"
    suggested_tier: int = 3
    region: str = "Unknown"
    paywall: Literal["free", "metered", "hard"] = "free"
    specialty: str | None = None
    display_name: str
    reasoning: str = ""


class Evaluation(BaseModel):
    score: SourceScore
    promoted: bool
    evaluated_at: datetime


class CategoryStats(BaseModel):
    scores: list[float] = Field(default_factory=list)
    threshold: float = 5.0


class DiscoveryDocument(BaseModel):
    version: int = 1
    candidates: dict[str, CandidateDomain] = Field(default_factory=dict)
    evaluated: dict[str, Evaluation] = Field(default_factory=dict)
    category_stats: dict[str, CategoryStats] = Field(default_factory=dict)


class DiscoveredSource(BaseModel):
    """Registry entry for a promoted outlet, as written to discovered-sources.json."""

    display_name: str
    tier: int
    region: str
    paywall: str
    specialty: str | None = None
