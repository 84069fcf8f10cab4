import json
import logging
import math
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from src.modules.inference.contracts import JsonCompleter
from src.modules.news_search.errors import ClassificationFailure, PersistenceFailure
from src.modules.source_discovery.schemas import (
    ArticleSighting,
    CandidateDomain,
    CategoryStats,
    DiscoveredSource,
    DiscoveryDocument,
    Evaluation,
    RubricScores,
    SourceScore,
)
from src.modules.sources.models import SourceEntry, SourceRegistry
from src.modules.storage.service import JsonDocumentStore

logger = logging.getLogger(__name__)

STATE_FILENAME = "source-discovery.json"
DISCOVERED_FILENAME = "discovered-sources.json"

MIN_SIGHTINGS = 3
MAX_SIGHTINGS_STORED = 5
MAX_EVALUATIONS_PER_RUN = 5
MAX_TITLE_CHARS = 200
MAX_SNIPPET_CHARS = 300

DEFAULT_THRESHOLD = 5.0
MIN_SCORES_FOR_PERCENTILE = 4
THRESHOLD_PERCENTILE = 0.75

SCORING_PROMPT = """\
You are evaluating a news source for inclusion in a curated quality registry.

Score the source from 1 to 10 on each criterion:
impartiality, accuracy, depth, expertise, globalPerspective, clarity,
transparency, timeliness.

Source domain: {domain}
Sample articles from this source:
{articles}

Respond with JSON only:
{{"displayName": "...", "scores": {{"impartiality": 0, "accuracy": 0, "depth": 0, \
"expertise": 0, "globalPerspective": 0, "clarity": 0, "transparency": 0, "timeliness": 0}}, \
"category": "general|specialty|regional|wire", "suggestedTier": 1, "region": "...", \
"paywall": "free|metered|hard", "specialty": null, "reasoning": "..."}}"""

_DISCOVERED = TypeAdapter(dict[str, DiscoveredSource])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def percentile_threshold(scores: list[float]) -> float:
    """Top-quartile cut-off for a category, or the default until enough data exists."""
    if len(scores) < MIN_SCORES_FOR_PERCENTILE:
        return DEFAULT_THRESHOLD
    ordered = sorted(scores)
    return ordered[math.floor(len(ordered) * THRESHOLD_PERCENTILE)]


class SourceDiscovery:
    """Finds new outlets in search results and promotes the good ones.

    Unknown domains collect sightings as they appear. Once a domain has been
    seen ``MIN_SIGHTINGS`` times an LLM scores it against a quality rubric,
    and domains in the top quartile of their category join the registry.
    """

    def __init__(
        self,
        data_dir: Path,
        llm: JsonCompleter,
        sources: SourceRegistry,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = JsonDocumentStore(Path(data_dir) / STATE_FILENAME)
        self._discovered_store = JsonDocumentStore(Path(data_dir) / DISCOVERED_FILENAME)
        self._llm = llm
        self._sources = sources
        self._clock = clock
        self._data = DiscoveryDocument()
        self._dirty = False

    # ── Lifecycle ───────────────────────────────────────────────

    def open(self) -> None:
        self._data = self._load()
        merged = sum(
            self._sources.register(domain, self._to_entry(source))
            for domain, source in self.discovered_sources().items()
        )
        logger.info(
            "Source discovery loaded: %d candidates, %d evaluated, %d discovered sources merged",
            len(self._data.candidates), len(self._data.evaluated), merged,
        )

    def flush(self) -> None:
        self.save()

    def close(self) -> None:
        self.save()

    # ── Public API ──────────────────────────────────────────────

    def record_unknown(self, domain: str, title: str, snippet: str, url: str) -> None:
        if domain in self._data.evaluated:
            return

        now = self._clock()
        candidate = self._data.candidates.get(domain)
        if candidate is None:
            candidate = CandidateDomain(domain=domain, first_seen=now, last_seen=now)
            self._data.candidates[domain] = candidate
        candidate.last_seen = now
        self._dirty = True

        if any(s.url == url for s in candidate.sightings):
            return

        candidate.sightings.append(ArticleSighting(
            title=title[:MAX_TITLE_CHARS],
            snippet=snippet[:MAX_SNIPPET_CHARS],
            url=url,
            seen_at=now,
        ))
        if len(candidate.sightings) > MAX_SIGHTINGS_STORED:
            del candidate.sightings[: len(candidate.sightings) - MAX_SIGHTINGS_STORED]

    def pending_count(self) -> int:
        return sum(
            1 for c in self._data.candidates.values() if len(c.sightings) >= MIN_SIGHTINGS
        )

    def candidate(self, domain: str) -> CandidateDomain | None:
        return self._data.candidates.get(domain)

    def evaluation(self, domain: str) -> Evaluation | None:
        return self._data.evaluated.get(domain)

    def category_threshold(self, category: str) -> float:
        stats = self._data.category_stats.get(category)
        return stats.threshold if stats else DEFAULT_THRESHOLD

    async def evaluate_candidates(self) -> list[str]:
        """Score ready candidates and promote the qualifying ones. Returns promoted domains."""
        ready = [
            c for c in self._data.candidates.values() if len(c.sightings) >= MIN_SIGHTINGS
        ][:MAX_EVALUATIONS_PER_RUN]
        if not ready:
            return []

        logger.info("Evaluating %d candidate domains", len(ready))
        promoted: list[str] = []
        for candidate in ready:
            try:
                score = await self._score_domain(candidate)
            except ClassificationFailure as exc:
                logger.warning("Scoring failed for %s: %s", candidate.domain, exc)
                continue

            self._update_category_stats(score.category, score.average_score)
            threshold = self.category_threshold(score.category)
            passes = score.average_score >= threshold

            self._data.evaluated[candidate.domain] = Evaluation(
                score=score, promoted=passes, evaluated_at=self._clock()
            )
            del self._data.candidates[candidate.domain]
            self._dirty = True

            if passes:
                self._sources.register(candidate.domain, self._to_entry(self._to_discovered(score)))
                promoted.append(candidate.domain)
                logger.info(
                    "Promoted %s: %s (T%d, avg %.1f, threshold %.1f)",
                    candidate.domain, score.display_name, score.suggested_tier,
                    score.average_score, threshold,
                )
            else:
                logger.info(
                    "Rejected %s: avg %.1f < threshold %.1f for %s",
                    candidate.domain, score.average_score, threshold, score.category,
                )

        if promoted:
            self._write_discovered_sources()
        self.save()
        return promoted

    def discovered_sources(self) -> dict[str, DiscoveredSource]:
        try:
            raw = self._discovered_store.read()
            if raw is None:
                return {}
            return _DISCOVERED.validate_json(raw)
        except (PersistenceFailure, ValidationError, ValueError) as exc:
            logger.warning("Failed to load discovered sources: %s", exc)
            return {}

    def save(self) -> None:
        if not self._dirty:
            return
        try:
            self._store.write(self._data.model_dump_json(indent=2))
        except PersistenceFailure as exc:
            logger.warning("Failed to save source discovery state: %s", exc)
            return
        self._dirty = False

    # ── Internal ────────────────────────────────────────────────

    async def _score_domain(self, candidate: CandidateDomain) -> SourceScore:
        articles = "\n\n".join(
            f'{i}. "{s.title}"\n   {s.snippet}'
            for i, s in enumerate(candidate.sightings, start=1)
        )
        payload = await self._llm.complete_json(
            SCORING_PROMPT.format(domain=candidate.domain, articles=articles),
            temperature=0.2,
        )
        return self._parse_score(candidate.domain, payload)

    @staticmethod
    def _parse_score(domain: str, payload: Any) -> SourceScore:
        if not isinstance(payload, dict):
            raise ClassificationFailure("Score reply is not an object")
        try:
            scores = RubricScores.model_validate(payload.get("scores"))
        except ValidationError as exc:
            raise ClassificationFailure(f"Invalid rubric scores: {exc}") from exc

        category = payload.get("category")
        paywall = payload.get("paywall")
        tier = payload.get("suggestedTier")
        return SourceScore(
            domain=domain,
            scores=scores,
            average_score=scores.average,
            category=category if category in ("general", "specialty", "regional", "wire") else "general",
            suggested_tier=tier if tier in (1, 2, 3) else 3,
            region=payload.get("region") or "Unknown",
            paywall=paywall if paywall in ("free", "metered", "hard") else "free",
            specialty=payload.get("specialty") or None,
            display_name=payload.get("displayName") or domain,
            reasoning=payload.get("reasoning") or "",
        )

    def _update_category_stats(self, category: str, score: float) -> None:
        stats = self._data.category_stats.setdefault(category, CategoryStats())
        stats.scores.append(score)
        stats.threshold = percentile_threshold(stats.scores)

    @staticmethod
    def _to_discovered(score: SourceScore) -> DiscoveredSource:
        return DiscoveredSource(
            display_name=score.display_name,
            tier=score.suggested_tier,
            region=score.region,
            paywall=score.paywall,
            specialty=score.specialty,
        )

    @staticmethod
    def _to_entry(source: DiscoveredSource) -> SourceEntry:
        return SourceEntry(
            display_name=source.display_name,
            tier=source.tier,
            region=source.region,
            paywall=source.paywall,
            specialty=source.specialty,
        )

    def _write_discovered_sources(self) -> None:
        sources = {
            domain: self._to_discovered(entry.score).model_dump(exclude_none=True)
            for domain, entry in self._data.evaluated.items()
            if entry.promoted
        }
        try:
            self._discovered_store.write(json.dumps(sources, indent=2))
        except PersistenceFailure as exc:
            logger.warning("Failed to write discovered sources: %s", exc)
            return
        logger.info("Wrote %d discovered sources", len(sources))

    def _load(self) -> DiscoveryDocument:
        try:
            raw = self._store.read()
            if raw is not None:
                return DiscoveryDocument.model_validate_json(raw)
        except (PersistenceFailure, ValidationError, ValueError) as exc:
            logger.warning("Failed to load source discovery state, starting fresh: %s", exc)
        return DiscoveryDocument()
