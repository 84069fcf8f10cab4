from pydantic import BaseModel

from src.modules.extraction_cache.schemas import ExtractedArticle
from src.modules.source_tracker.schemas import Outcome


class ExtractionResult(BaseModel):
    outcome: Outcome
    article: ExtractedArticle | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS and self.article is not None
