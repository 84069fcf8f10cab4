import logging
from typing import Any

from src.modules.inference.contracts import JsonCompleter
from src.modules.news_search.errors import ClassificationFailure
from src.modules.news_search.schemas import FACET_COUNT, Facet, QueryClassification
from src.modules.providers.newsmesh import CATEGORIES
from src.modules.providers.schemas import ArticleRecord

logger = logging.getLogger(__name__)

_MODES = ("survey", "thematic", "deep")
_RECENCIES = ("breaking", "recent", "general")

CLASSIFY_PROMPT = """\
Classify this news query and generate {count} faceted search queries. Each facet \
gets a short query (2-4 words) and a category filter so the facets find different articles.

Query: "{query}"

MODES:
- survey: broad coverage across different topics ("what's happening", "today's headlines")
- thematic: coverage within one topic area ("climate", "tech" trends)
- deep: multiple perspectives on one specific issue ("takes on", "analysis of")

RECENCY:
- breaking: "today", "right now", "latest"
- recent: "this week", "updates", an ongoing story
- general: no temporal signal

CATEGORIES (a different one per facet):
{categories}

If the query names a country, add its ISO 3166-1 alpha-2 code as "country".

Return JSON only: {{"mode": "...", "recency": "...", \
"facets": [{{"query": "...", "category": "...", "country": "..."}}]}}"""

FILTER_PROMPT = """\
Query: "{query}"

{titles}

Which articles are clearly OFF-TOPIC? Err toward keeping. Return JSON: {{"drop":[ids]}}"""


def _pad(facets: list[Facet], query_text: str) -> list[Facet]:
    while len(facets) < FACET_COUNT:
        facets.append(Facet(query=query_text))
    return facets


def _parse_facet(raw: Any) -> Facet | None:
    if not isinstance(raw, dict):
        return None
    query = raw.get("query")
    if not isinstance(query, str) or len(query) <= 3:
        return None
    category = raw.get("category")
    country = raw.get("country")
    return Facet(
        query=query,
        category=category if category in CATEGORIES else None,
        country=country.lower() if isinstance(country, str) and len(country) == 2 else None,
    )


def parse_classification(payload: Any, query_text: str) -> QueryClassification:
    if not isinstance(payload, dict):
        raise ClassificationFailure("Classification reply is not an object")

    mode = payload.get("mode") if payload.get("mode") in _MODES else "thematic"
    recency = payload.get("recency") if payload.get("recency") in _RECENCIES else "general"

    facets: list[Facet] = []
    if isinstance(payload.get("facets"), list):
        facets = [f for f in map(_parse_facet, payload["facets"]) if f is not None]
    elif isinstance(payload.get("queries"), list):
        facets = [
            Facet(query=q) for q in payload["queries"]
            if isinstance(q, str) and len(q) > 3
        ]

    return QueryClassification(
        mode=mode,
        recency=recency,
        facets=_pad(facets[:FACET_COUNT], query_text),
    )


def parse_drop_ids(payload: Any) -> set[int]:
    if not isinstance(payload, dict) or not isinstance(payload.get("drop"), list):
        raise ClassificationFailure("Filter reply has no drop list")
    ids: set[int] = set()
    for value in payload["drop"]:
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            continue
    return ids


class QueryClassifier:
    """The two LLM calls of a search: query classification and relevance filtering."""

    def __init__(self, llm: JsonCompleter) -> None:
        self._llm = llm

    @staticmethod
    def fallback(query_text: str) -> QueryClassification:
        return QueryClassification(
            mode="thematic",
            recency="general",
            facets=_pad([Facet(query=query_text)], query_text),
        )

    async def classify(self, query_text: str) -> QueryClassification:
        prompt = CLASSIFY_PROMPT.format(
            count=FACET_COUNT, query=query_text, categories=", ".join(CATEGORIES)
        )
        try:
            payload = await self._llm.complete_json(prompt, temperature=0.3)
            classification = parse_classification(payload, query_text)
        except ClassificationFailure as exc:
            logger.warning("Classification failed, defaulting to thematic: %s", exc)
            return self.fallback(query_text)

        logger.info(
            "Classified as %s/%s, facets: %s",
            classification.mode,
            classification.recency,
            ", ".join(
                f"[{f.category or '?'}{':' + f.country if f.country else ''}] {f.query[:40]!r}"
                for f in classification.facets
            ),
        )
        return classification

    async def filter_by_relevance(
        self, articles: list[ArticleRecord], query_text: str
    ) -> list[ArticleRecord]:
        """Drop clearly off-topic articles. Any failure keeps everything."""
        if not articles:
            return []

        titles = "\n".join(f"{i}. {a.title}" for i, a in enumerate(articles, start=1))
        prompt = FILTER_PROMPT.format(query=query_text, titles=titles)
        try:
            payload = await self._llm.complete_json(prompt, temperature=0.0, max_tokens=60)
            drop_ids = parse_drop_ids(payload)
        except ClassificationFailure as exc:
            logger.warning("Relevance filter failed, keeping all: %s", exc)
            return articles

        for idx in sorted(drop_ids):
            if 1 <= idx <= len(articles):
                logger.info("Dropping #%d %r", idx, articles[idx - 1].title[:50])
        return [a for i, a in enumerate(articles, start=1) if i not in drop_ids]
