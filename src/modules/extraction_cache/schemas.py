from pydantic import AliasChoices, BaseModel, Field


class ExtractedArticle(BaseModel):
    """Article body and metadata returned by a content extractor.

    Loads both snake_case and the camelCase keys of older cache files.
    """

    author: str | None = None
    date: str | None = None
    site_name: str | None = Field(
        default=None, validation_alias=AliasChoices("site_name", "siteName")
    )
    image_url: str | None = Field(
        default=None, validation_alias=AliasChoices("image_url", "imageUrl")
    )
    text: str | None = None
    word_count: int | None = Field(
        default=None, validation_alias=AliasChoices("word_count", "wordCount")
    )


class CacheEntry(BaseModel):
    data: ExtractedArticle | None  # None records a known failure
    cached_at: int = Field(  # epoch milliseconds, diagnostic only
        validation_alias=AliasChoices("cached_at", "cachedAt")
    )


class CacheDocument(BaseModel):
    version: int = 1
    entries: dict[str, CacheEntry] = Field(default_factory=dict)


class CacheStats(BaseModel):
    total: int
    hits: int
    misses: int
