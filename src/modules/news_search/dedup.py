import logging
import re
from urllib.parse import urlparse

from src.modules.extraction_cache.service import normalize_url
from src.modules.providers.schemas import ArticleRecord
from src.modules.sources.models import canonical_outlet

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10
SAME_OUTLET_THRESHOLD = 0.6
CROSS_OUTLET_THRESHOLD = 0.7
MIN_SHARED_TOKENS = 2

_US = re.compile(r"u\.s\.")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_LIVE_MARKERS = ("/live/", "live-updates", "/liveblog/")


def tokenize(title: str) -> set[str]:
    """Lowercased title words of 3+ characters, punctuation stripped."""
    text = _NON_ALNUM.sub("", _US.sub("us", title.lower()))
    return {word for word in text.split() if len(word) >= 3}


def dice_coefficient(a: set[str], b: set[str]) -> float:
    """Sørensen–Dice: 2·|A∩B| / (|A|+|B|)."""
    if not a or not b:
        return 0.0
    return 2 * len(a & b) / (len(a) + len(b))


def is_shallow_url(url: str) -> bool:
    try:
        path = urlparse(url).path
    except ValueError:
        return True
    return len([seg for seg in path.split("/") if seg]) < 2


def is_live_url(url: str) -> bool:
    return any(marker in url for marker in _LIVE_MARKERS)


def is_duplicate_title(
    tokens: set[str], other: set[str], same_outlet: bool
) -> bool:
    if len(tokens & other) < MIN_SHARED_TOKENS:
        return False
    threshold = SAME_OUTLET_THRESHOLD if same_outlet else CROSS_OUTLET_THRESHOLD
    return dice_coefficient(tokens, other) >= threshold


def tier_rank(tier: int) -> int:
    """Outlet quality rank: tier 1 highest, unknown (tier 0) lowest."""
    return 4 - tier if tier else 0


def _order_key(article: ArticleRecord) -> tuple[int, int, str]:
    return (-tier_rank(article.source_tier), -len(article.snippet), normalize_url(article.url))


def _prefers(article: ArticleRecord, existing: ArticleRecord) -> bool:
    rank, existing_rank = tier_rank(article.source_tier), tier_rank(existing.source_tier)
    if rank != existing_rank:
        return rank > existing_rank
    return article.origin_provider == "exa" and len(article.snippet) > len(existing.snippet)


def _replaces_same_url(article: ArticleRecord, existing: ArticleRecord) -> bool:
    if article.origin_provider != "exa":
        return False
    return existing.origin_provider != "exa" or len(article.snippet) > len(existing.snippet)


def deduplicate(articles: list[ArticleRecord]) -> list[ArticleRecord]:
    """Drop exact-URL and near-identical-title duplicates.

    Input is sorted by tier, snippet length and URL first so the survivors do
    not depend on the order in which providers answered.
    """
    kept: dict[str, ArticleRecord] = {}
    tokens_by_key: dict[str, set[str]] = {}

    for article in sorted(articles, key=_order_key):
        if len(article.title) < MIN_TITLE_LENGTH:
            continue
        if "syndication.washingtonpost.com" in article.url:
            logger.debug("Skipping WaPo syndication URL: %s", article.url)
            continue
        if is_shallow_url(article.url):
            logger.debug("Skipping shallow URL: %s", article.url)
            continue

        if is_live_url(article.url):
            article.is_live = True

        key = normalize_url(article.url)
        tokens = tokenize(article.title)
        if key in kept:
            if _replaces_same_url(article, kept[key]):
                kept[key] = article
                tokens_by_key[key] = tokens
            continue

        outlet = canonical_outlet(article.source_domain)
        duplicate_of: str | None = None
        for existing_key, existing in kept.items():
            same_outlet = canonical_outlet(existing.source_domain) == outlet
            if is_duplicate_title(tokens, tokens_by_key[existing_key], same_outlet):
                duplicate_of = existing_key
                break

        if duplicate_of is not None:
            if not _prefers(article, kept[duplicate_of]):
                continue
            del kept[duplicate_of]
            del tokens_by_key[duplicate_of]

        kept[key] = article
        tokens_by_key[key] = tokens

    return list(kept.values())
