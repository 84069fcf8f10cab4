import logging
import os
from pathlib import Path

from src.modules.news_search.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """Reads and atomically rewrites a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def read(self) -> str | None:
        """Return the raw document text, or ``None`` when nothing was saved yet."""
        if not self._path.exists():
            return None
        try:
            return self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceFailure(f"Could not read {self._path}: {exc}") from exc

    def write(self, payload: str) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise PersistenceFailure(f"Could not write {self._path}: {exc}") from exc
        logger.debug("Wrote %s (%d bytes)", self._path, len(payload))
