import html
import re

_WHITESPACE = re.compile(r"\s+")
_SUFFIX_SEPARATORS = (" - ", " | ", " — ", " · ")
MAX_TITLE_LENGTH = 120

_OPINION_PATHS = (
    "/opinion/", "/editorial/", "/comment/", "/op-ed/",
    "/letters/", "/columnists/", "/commentisfree/", "/blogs/",
)
_ANALYSIS_PATHS = (
    "/analysis/", "/in-depth/", "/long-read/", "/longread/", "/feature/", "/features/",
)
_EXPLAINER_PATHS = ("/explainer/", "/what-is/", "/guide/", "/faq/", "/explained/")
_INVESTIGATION_PATHS = ("/investigation/", "/investigates/", "/exclusive/", "/special-report/")


def normalize_title(raw: str) -> str:
    """Clean a provider headline.

    Decodes HTML entities, collapses whitespace, strips a trailing
    " - Outlet" suffix and truncates very long titles.
    """
    title = _WHITESPACE.sub(" ", html.unescape(raw)).strip()

    for sep in _SUFFIX_SEPARATORS:
        idx = title.rfind(sep)
        if idx > 20:
            suffix = title[idx + len(sep):].strip()
            if len(suffix.split()) <= 4:
                title = title[:idx].strip()
                break

    if len(title) > MAX_TITLE_LENGTH:
        breakpoint_ = title.rfind(" ", 0, 118)
        title = title[: breakpoint_ if breakpoint_ > 80 else 117] + "…"

    return title


def _has_prefix(title: str, label: str) -> bool:
    return title.startswith(f"{label}:") or title.startswith(f"{label} :")


def detect_article_type(url: str, author: str | None = None, title: str | None = None) -> str:
    url_lower = url.lower()
    title_lower = (title or "").lower().strip()

    # URL path segments are the strongest signal.
    if any(p in url_lower for p in _OPINION_PATHS):
        return "opinion"
    if any(p in url_lower for p in _ANALYSIS_PATHS):
        return "analysis"
    if any(p in url_lower for p in _EXPLAINER_PATHS):
        return "explainer"
    if any(p in url_lower for p in _INVESTIGATION_PATHS):
        return "investigation"

    if _has_prefix(title_lower, "opinion") or _has_prefix(title_lower, "editorial"):
        return "opinion"
    if "fact check" in title_lower or "fact-check" in title_lower:
        return "analysis"
    if _has_prefix(title_lower, "analysis") or _has_prefix(title_lower, "explainer"):
        return "analysis"
    if title_lower.startswith("what to know about "):
        return "explainer"
    if title_lower.startswith(("how ", "why ")):
        return "analysis"
    if _has_prefix(title_lower, "exclusive"):
        return "investigation"
    if any(p in title_lower for p in ("we must ", "we need to ", "we should ")):
        return "opinion"

    if author:
        author_lower = author.lower()
        if "opinion by" in author_lower or "editorial board" in author_lower:
            return "opinion"

    return "reporting"


def reading_time(word_count: int | None) -> int | None:
    if not word_count:
        return None
    return max(1, round(word_count / 250))
