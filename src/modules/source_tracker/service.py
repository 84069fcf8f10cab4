import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from src.modules.news_search.errors import PersistenceFailure
from src.modules.source_tracker.schemas import (
    DomainStatus,
    LedgerDocument,
    LedgerSummary,
    Outcome,
    SourceProfile,
)
from src.modules.storage.service import JsonDocumentStore

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "source-tracker.json"

WINDOW_SIZE = 10
MIN_ATTEMPTS_FOR_DECISION = 5
BLOCK_THRESHOLD = 0.10
PROBATION_THRESHOLD = 0.30
MAINTENANCE_INTERVAL = timedelta(days=28)
RETRY_FRACTION = 0.20
TRIAL_ATTEMPTS = 3
TRIAL_SUCCESS_REQUIRED = 2

SCORE_PENALTIES = {
    DomainStatus.ACTIVE: 0,
    DomainStatus.PROBATION: -1,
    DomainStatus.BLOCKED: -5,
}

# Known-bad domains that start out blocked with a synthetic failure history.
SEED_BLOCKED: dict[str, Outcome] = {
    "nytimes.com": Outcome.PAYWALL,
    "ft.com": Outcome.PAYWALL,
    "wsj.com": Outcome.PAYWALL,
    "economist.com": Outcome.PAYWALL,
    "bloomberg.com": Outcome.PAYWALL,
    "theatlantic.com": Outcome.PAYWALL,
    "newyorker.com": Outcome.PAYWALL,
    "washingtonpost.com": Outcome.PAYWALL,
    "theinformation.com": Outcome.PAYWALL,
    "thetimes.co.uk": Outcome.PAYWALL,
    "foxnews.com": Outcome.TIMEOUT,
    "si.com": Outcome.TIMEOUT,
    "arstechnica.com": Outcome.NO_TEXT,
    "politico.com": Outcome.NO_TEXT,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def success_rate(outcomes: list[Outcome]) -> float:
    if not outcomes:
        return 1.0
    return sum(1 for o in outcomes if o is Outcome.SUCCESS) / len(outcomes)


def compute_status(outcomes: list[Outcome]) -> DomainStatus:
    """Classify a domain from its trailing outcome window."""
    window = outcomes[-WINDOW_SIZE:]
    if len(window) < MIN_ATTEMPTS_FOR_DECISION:
        return DomainStatus.ACTIVE
    rate = success_rate(window)
    if rate < BLOCK_THRESHOLD:
        return DomainStatus.BLOCKED
    if rate < PROBATION_THRESHOLD:
        return DomainStatus.PROBATION
    return DomainStatus.ACTIVE


class SourceTracker:
    """Per-domain reliability ledger with evidence-based blocking.

    Each domain keeps a ring buffer of its last ``WINDOW_SIZE`` outcomes and
    its status is always recomputed from that buffer. Blocked domains are
    periodically given a short trial so they can earn their way back.

    Mutations are not locked. The ledger expects a single writer, which in
    practice means every ``record()`` call runs on the event loop thread.
    Changes stay in memory until ``save()`` is called.
    """

    def __init__(
        self,
        data_dir: Path,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = JsonDocumentStore(Path(data_dir) / LEDGER_FILENAME)
        self._clock = clock
        self._data = self._fresh_document()
        self._dirty = False

    # ── Lifecycle ───────────────────────────────────────────────

    def open(self) -> None:
        self._data = self._load()
        summary = self.summary()
        logger.info(
            "Ledger loaded: %d active, %d probation, %d blocked (%d tracked)",
            summary.active, summary.probation, summary.blocked, summary.total,
        )

    def flush(self) -> None:
        self.save()

    def close(self) -> None:
        self.save()

    # ── Public API ──────────────────────────────────────────────

    @property
    def last_maintenance(self) -> datetime:
        return self._data.last_maintenance

    @property
    def dirty(self) -> bool:
        return self._dirty

    def record(self, domain: str, outcome: Outcome) -> None:
        profile = self._get_or_create(domain)
        now = self._clock()

        profile.outcomes.append(outcome)
        if len(profile.outcomes) > WINDOW_SIZE:
            del profile.outcomes[: len(profile.outcomes) - WINDOW_SIZE]

        profile.total_attempts += 1
        profile.last_attempt = now
        if outcome is Outcome.SUCCESS:
            profile.total_successes += 1
            profile.last_success = now

        if profile.trial_remaining is not None:
            profile.trial_remaining -= 1
            if profile.trial_remaining <= 0:
                self._evaluate_trial(profile)

        self._update_status(profile)
        self._dirty = True

    def status(self, domain: str) -> DomainStatus:
        profile = self._data.domains.get(domain)
        if profile is None:
            return DomainStatus.ACTIVE
        return compute_status(profile.outcomes)

    def score_penalty(self, domain: str) -> int:
        return SCORE_PENALTIES[self.status(domain)]

    def should_skip(self, domain: str) -> bool:
        return self.status(domain) is DomainStatus.BLOCKED

    def profile(self, domain: str) -> SourceProfile | None:
        return self._data.domains.get(domain)

    def blocked_domains(self) -> list[str]:
        return [
            p.domain for p in self._data.domains.values()
            if compute_status(p.outcomes) is DomainStatus.BLOCKED
        ]

    def summary(self) -> LedgerSummary:
        counts = {status: 0 for status in DomainStatus}
        for p in self._data.domains.values():
            counts[compute_status(p.outcomes)] += 1
        return LedgerSummary(
            active=counts[DomainStatus.ACTIVE],
            probation=counts[DomainStatus.PROBATION],
            blocked=counts[DomainStatus.BLOCKED],
            total=len(self._data.domains),
        )

    def run_maintenance(self) -> list[str]:
        """Put the longest-blocked domains on trial. Returns the domains promoted.

        Runs at most once per ``MAINTENANCE_INTERVAL``; earlier calls are no-ops.
        """
        now = self._clock()
        if now - self._data.last_maintenance < MAINTENANCE_INTERVAL:
            return []

        blocked = [
            p for p in self._data.domains.values()
            if compute_status(p.outcomes) is DomainStatus.BLOCKED
            and p.trial_remaining is None
        ]
        to_retry = max(1, math.ceil(len(blocked) * RETRY_FRACTION))
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        blocked.sort(key=lambda p: p.blocked_since or epoch)

        promoted: list[str] = []
        for profile in blocked[:to_retry]:
            profile.trial_remaining = TRIAL_ATTEMPTS
            # A fresh, unbiased sample for the trial.
            profile.outcomes = []
            promoted.append(profile.domain)
            logger.info("Promoting %s to trial (%d attempts)", profile.domain, TRIAL_ATTEMPTS)

        self._data.last_maintenance = now
        self._dirty = True
        self.save()
        return promoted

    def save(self) -> None:
        if not self._dirty:
            return
        try:
            self._store.write(self._data.model_dump_json(indent=2))
        except PersistenceFailure as exc:
            logger.warning("Failed to save source ledger: %s", exc)
            return
        self._dirty = False

    # ── Internal ────────────────────────────────────────────────

    def _fresh_document(self) -> LedgerDocument:
        now = self._clock()
        data = LedgerDocument(last_maintenance=now)
        for domain, reason in SEED_BLOCKED.items():
            data.domains[domain] = SourceProfile(
                domain=domain,
                outcomes=[reason] * MIN_ATTEMPTS_FOR_DECISION,
                total_attempts=MIN_ATTEMPTS_FOR_DECISION,
                last_attempt=now,
                blocked_since=now,
            )
        return data

    def _load(self) -> LedgerDocument:
        try:
            raw = self._store.read()
            if raw is not None:
                return LedgerDocument.model_validate_json(raw)
        except (PersistenceFailure, ValidationError, ValueError) as exc:
            logger.warning("Failed to load source ledger, starting fresh: %s", exc)
        return self._fresh_document()

    def _get_or_create(self, domain: str) -> SourceProfile:
        profile = self._data.domains.get(domain)
        if profile is None:
            profile = SourceProfile(domain=domain)
            self._data.domains[domain] = profile
        return profile

    def _update_status(self, profile: SourceProfile) -> None:
        status = compute_status(profile.outcomes)
        rate = success_rate(profile.outcomes[-WINDOW_SIZE:])
        if status is DomainStatus.BLOCKED:
            if profile.blocked_since is None:
                profile.blocked_since = self._clock()
                logger.info("Blocked %s (success rate: %.0f%%)", profile.domain, rate * 100)
            return
        if status is DomainStatus.PROBATION:
            logger.debug("Probation %s (success rate: %.0f%%)", profile.domain, rate * 100)
        if profile.blocked_since is not None and profile.trial_remaining is None:
            profile.blocked_since = None
            logger.info("Unblocked %s", profile.domain)

    def _evaluate_trial(self, profile: SourceProfile) -> None:
        trial = profile.outcomes[-TRIAL_ATTEMPTS:]
        successes = sum(1 for o in trial if o is Outcome.SUCCESS)
        profile.trial_remaining = None

        if successes >= TRIAL_SUCCESS_REQUIRED:
            profile.blocked_since = None
            logger.info(
                "Trial passed for %s (%d/%d successes)",
                profile.domain, successes, TRIAL_ATTEMPTS,
            )
            return

        # Three trial outcomes sit below the decision minimum, so re-seed the
        # window with a failure history that computes as blocked.
        failure = next(
            (o for o in reversed(trial) if o is not Outcome.SUCCESS), Outcome.NO_TEXT
        )
        profile.outcomes = [failure] * MIN_ATTEMPTS_FOR_DECISION
        profile.blocked_since = self._clock()
        logger.info(
            "Trial failed for %s (%d/%d successes), re-blocked",
            profile.domain, successes, TRIAL_ATTEMPTS,
        )
