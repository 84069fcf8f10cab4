import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from src.modules.news_search.schemas import ArticleCluster, NewsMode
from src.modules.providers.schemas import ArticleRecord
from src.modules.sources.models import canonical_outlet

logger = logging.getLogger(__name__)

TIER_WEIGHTS = {1: 3.0, 2: 2.0, 3: 1.0}
PAYWALL_WEIGHTS = {"free": 2.0, "metered": 1.0, "hard": 0.0}

OUTLET_CAPS: dict[str, int] = {
    "survey": 1,
    "thematic": 2,
    "deep": 1,
}

SKIP_SCORE = -1.0
SKIP_AFTER_SELECTED = 3
CLUSTER_OVERLAP = 0.4

STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
    "her", "was", "one", "our", "out", "has", "have", "from", "that", "this",
    "with", "what", "how", "why", "who", "when", "where", "about", "into",
    "will", "been", "more", "than", "them", "then", "some", "very", "new",
    "says", "could", "would", "should", "just", "like", "over", "also",
})

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

PenaltyLookup = Callable[[str], float]


def _no_penalty(domain: str) -> float:
    return 0.0


def extract_topic_words(title: str) -> list[str]:
    text = _NON_ALNUM.sub("", title.lower())
    return [w for w in text.split() if len(w) > 2 and w not in STOP_WORDS]


def _parse_published(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        published = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        # Extraction backfills use RFC 1123 dates.
        try:
            published = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


def score_article(
    article: ArticleRecord,
    penalty: PenaltyLookup = _no_penalty,
    now: datetime | None = None,
) -> float:
    score = TIER_WEIGHTS.get(article.source_tier, 0.0)
    score += PAYWALL_WEIGHTS.get(article.paywall_status, 0.0)

    published = _parse_published(article.published_at)
    if published is not None:
        hours_old = ((now or datetime.now(timezone.utc)) - published).total_seconds() / 3600
        if hours_old < 24:
            score += 1.0
        elif hours_old < 168:
            score += 0.5

    return score + penalty(article.source_domain)


def _diversity_bonus(
    article: ArticleRecord,
    mode: NewsMode,
    outlet_count: int,
    seen_regions: set[str],
    seen_topic_words: set[str],
) -> float:
    if mode == "survey":
        words = extract_topic_words(article.title)
        fresh = [w for w in words if w not in seen_topic_words]
        return 2.0 if len(fresh) > len(words) * 0.5 else -1.0

    fresh_region = article.source_region not in seen_regions
    if mode == "thematic":
        return (1.0 if outlet_count == 0 else 0.0) + (0.5 if fresh_region else 0.0)

    return (2.0 if outlet_count == 0 else -2.0) + (1.0 if fresh_region else 0.0)


def greedy_select(
    scored: list[tuple[ArticleRecord, float]],
    mode: NewsMode,
    max_results: int,
    outlet_counts: dict[str, int],
) -> list[ArticleRecord]:
    """First pass: hard per-outlet cap plus the mode's diversity bonus."""
    cap = OUTLET_CAPS[mode]
    selected: list[ArticleRecord] = []
    seen_regions: set[str] = set()
    seen_topic_words: set[str] = set()

    for article, base in scored:
        if len(selected) >= max_results:
            break
        outlet = canonical_outlet(article.source_domain)
        count = outlet_counts.get(outlet, 0)
        if count >= cap:
            continue

        final = base + _diversity_bonus(article, mode, count, seen_regions, seen_topic_words)
        if final < SKIP_SCORE and len(selected) >= SKIP_AFTER_SELECTED:
            continue

        selected.append(article)
        outlet_counts[outlet] = count + 1
        seen_regions.add(article.source_region)
        seen_topic_words.update(extract_topic_words(article.title))

    return selected


def relaxed_fill(
    scored: list[tuple[ArticleRecord, float]],
    selected: list[ArticleRecord],
    mode: NewsMode,
    max_results: int,
    outlet_counts: dict[str, int],
) -> list[ArticleRecord]:
    """Second pass: top up remaining slots in base-score order at cap + 1."""
    cap = OUTLET_CAPS[mode] + 1
    chosen = {id(a) for a in selected}
    for article, _ in scored:
        if len(selected) >= max_results:
            break
        if id(article) in chosen:
            continue
        outlet = canonical_outlet(article.source_domain)
        count = outlet_counts.get(outlet, 0)
        if count >= cap:
            continue
        selected.append(article)
        chosen.add(id(article))
        outlet_counts[outlet] = count + 1
    return selected


def select_articles(
    articles: list[ArticleRecord],
    mode: NewsMode,
    max_results: int,
    penalty: PenaltyLookup = _no_penalty,
    now: datetime | None = None,
) -> list[ArticleRecord]:
    if not articles:
        return []

    scored = [(a, score_article(a, penalty, now)) for a in articles]
    # Stable sort keeps the deterministic dedup order among equal scores.
    scored.sort(key=lambda pair: pair[1], reverse=True)

    outlet_counts: dict[str, int] = {}
    selected = greedy_select(scored, mode, max_results, outlet_counts)
    if len(selected) < max_results and len(selected) < len(articles):
        selected = relaxed_fill(scored, selected, mode, max_results, outlet_counts)

    logger.info("Selected %d/%d articles (mode: %s)", len(selected), len(articles), mode)
    return selected


def cluster_by_topic(articles: list[ArticleRecord]) -> list[ArticleCluster]:
    """Group same-story coverage. Single-article clusters are dropped."""
    clusters: list[ArticleCluster] = []
    for article in articles:
        words = extract_topic_words(article.title)
        match = next(
            (
                c for c in clusters
                if sum(1 for w in words if w in c.keywords)
                > min(len(words), len(c.keywords)) * CLUSTER_OVERLAP
            ),
            None,
        )
        if match is not None:
            match.articles.append(article)
            match.keywords.update(words)
        else:
            clusters.append(ArticleCluster(articles=[article], keywords=set(words)))

    return [c for c in clusters if len(c.articles) >= 2]
