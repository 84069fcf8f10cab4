import re

from src.modules.news_search.schemas import NewsMode

SURVEY_MIN_SNIPPET = 325
DEFAULT_MIN_SNIPPET = 200
EXTRACTED_MIN_SNIPPET = 325

_BRACKET_LINK = re.compile(r"\* \[")
_NAV_PHRASES = re.compile(r"\[Into section|See more|About us|Contact|PROMARKET", re.IGNORECASE)


def min_snippet_length(mode: NewsMode) -> int:
    return SURVEY_MIN_SNIPPET if mode == "survey" else DEFAULT_MIN_SNIPPET


def is_nav_junk(snippet: str) -> bool:
    """Navigation or sidebar text scraped in place of an article summary."""
    return (
        len(_BRACKET_LINK.findall(snippet)) >= 3
        or len(_NAV_PHRASES.findall(snippet)) >= 2
    )
