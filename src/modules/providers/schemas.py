from typing import Literal

from pydantic import BaseModel

Paywall = Literal["free", "metered", "hard"]
ArticleType = Literal["reporting", "analysis", "opinion", "investigation", "explainer"]
OriginProvider = Literal["newsmesh", "exa"]


class ArticleRecord(BaseModel):
    """A candidate news item, normalized at the provider boundary.

    The extraction step enriches records in place, so instances are mutable
    and live for a single search call only.
    """

    title: str
    url: str
    source_domain: str
    source_display_name: str
    source_tier: int = 0  # 0 means the outlet is not in the registry
    source_region: str = "Unknown"
    paywall_status: Paywall = "free"
    article_type: ArticleType = "reporting"
    snippet: str = ""
    author: str | None = None
    published_at: str | None = None
    image_url: str | None = None
    word_count: int | None = None
    reading_time_minutes: int | None = None
    origin_provider: OriginProvider
    is_live: bool = False
