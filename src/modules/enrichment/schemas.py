from typing import Any

from pydantic import BaseModel, Field


class Candidate(BaseModel):
    """A result awaiting verification, in the domain-agnostic shape."""

    name: str
    identifiers: dict[str, str] = Field(default_factory=dict)
    search_hint: str = ""
    enrichment_hooks: list[str] = Field(default_factory=list)
    payload: dict[str, Any] | None = None  # producer data carried through to hooks


class EnrichmentContext(BaseModel):
    timeout: float  # seconds, per hook call
    request_id: str
    search_location: dict[str, Any] | None = None


class EnrichmentData(BaseModel):
    verified: bool
    source: str
    data: dict[str, Any] = Field(default_factory=dict)


class EnrichedCandidate(Candidate):
    verified: bool = False
    enrichment: EnrichmentData | None = None


class ExecutorOptions(BaseModel):
    timeout: float = 2.0
    request_id: str = ""
    search_location: dict[str, Any] | None = None


class HookStats(BaseModel):
    success: int = 0
    failed: int = 0

    @property
    def rate(self) -> float:
        total = self.success + self.failed
        return self.success / total if total else 0.0


class EnrichmentStats(BaseModel):
    candidates_processed: int
    candidates_verified: int
    verification_rate: float
    hook_success_rates: dict[str, float]
    total_time_ms: float
