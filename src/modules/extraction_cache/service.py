import json
import logging
import re
import time
from enum import Enum
from pathlib import Path
from typing import Final, Literal, Union

from pydantic import ValidationError

from src.modules.extraction_cache.schemas import (
    CacheDocument,
    CacheEntry,
    CacheStats,
    ExtractedArticle,
)
from src.modules.news_search.errors import PersistenceFailure
from src.modules.storage.service import JsonDocumentStore

logger = logging.getLogger(__name__)

CACHE_FILENAME = "extraction-cache.json"

_QUERY_OR_FRAGMENT = re.compile(r"[?#].*$", re.DOTALL)


class _Miss(Enum):
    MISS = "miss"


MISS: Final = _Miss.MISS

CacheResult = Union[ExtractedArticle, None, Literal[_Miss.MISS]]


def normalize_url(url: str) -> str:
    """Cache key for ``url``: query string and fragment dropped, lowercased."""
    return _QUERY_OR_FRAGMENT.sub("", url).lower()


class ExtractionCache:
    """Permanent URL -> extracted article cache.

    Successes and failures are both stored, so ``get`` has three answers:
    an :class:`ExtractedArticle`, ``None`` for a URL that is known to fail,
    and :data:`MISS` for a URL that was never attempted. Entries never expire.
    """

    def __init__(self, data_dir: Path) -> None:
        self._store = JsonDocumentStore(Path(data_dir) / CACHE_FILENAME)
        self._entries: dict[str, CacheEntry] = {}
        self._dirty = False
        self._hits = 0
        self._misses = 0

    # ── Lifecycle ───────────────────────────────────────────────

    def open(self) -> None:
        self._entries = self._load()
        logger.info("Extraction cache loaded: %d entries", len(self._entries))

    def flush(self) -> None:
        self.save()

    def close(self) -> None:
        self.save()

    # ── Public API ──────────────────────────────────────────────

    @staticmethod
    def is_miss(result: CacheResult) -> bool:
        return result is MISS

    def get(self, url: str) -> CacheResult:
        entry = self._entries.get(normalize_url(url))
        if entry is None:
            self._misses += 1
            return MISS
        self._hits += 1
        return entry.data

    def set(self, url: str, data: ExtractedArticle | None) -> None:
        self._entries[normalize_url(url)] = CacheEntry(
            data=data, cached_at=int(time.time() * 1000)
        )
        self._dirty = True

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        return CacheStats(total=len(self._entries), hits=self._hits, misses=self._misses)

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def save(self) -> None:
        if not self._dirty:
            return
        document = CacheDocument(entries=self._entries)
        try:
            self._store.write(document.model_dump_json())
        except PersistenceFailure as exc:
            logger.warning("Failed to save extraction cache: %s", exc)
            return
        self._dirty = False

    # ── Internal ────────────────────────────────────────────────

    def _load(self) -> dict[str, CacheEntry]:
        try:
            raw = self._store.read()
            if raw is None:
                return {}
            payload = json.loads(raw)
            if isinstance(payload, dict) and "entries" not in payload:
                # Legacy layout: a bare url -> entry mapping.
                payload = {"version": 1, "entries": payload}
            return CacheDocument.model_validate(payload).entries
        except (PersistenceFailure, ValidationError, ValueError) as exc:
            logger.warning("Failed to load extraction cache, starting empty: %s", exc)
            return {}
