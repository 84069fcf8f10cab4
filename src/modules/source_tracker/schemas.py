from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Outcome(str, Enum):
    SUCCESS = "success"
    PAYWALL = "paywall"
    TIMEOUT = "timeout"
    NO_TEXT = "no-text"
    JUNK = "junk"


class DomainStatus(str, Enum):
    ACTIVE = "active"
    PROBATION = "probation"
    BLOCKED = "blocked"


class SourceProfile(BaseModel):
    """Outcome history for one content domain."""

    domain: str
    outcomes: list[Outcome] = Field(default_factory=list)  # oldest first, at most 10
    total_attempts: int = 0
    total_successes: int = 0
    last_attempt: datetime | None = None
    last_success: datetime | None = None
    blocked_since: datetime | None = None
    trial_remaining: int | None = None


class LedgerDocument(BaseModel):
    """On-disk layout of the reliability ledger."""

    version: int = 1
    last_maintenance: datetime
    domains: dict[str, SourceProfile] = Field(default_factory=dict)


class LedgerSummary(BaseModel):
    active: int
    probation: int
    blocked: int
    total: int
