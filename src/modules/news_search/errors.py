class NewsSearchError(Exception):
    """Base class for failures inside the news aggregation pipeline."""


class ProviderError(NewsSearchError):
    """One upstream search call failed. The engine treats it as an empty result."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ClassificationFailure(NewsSearchError):
    """The LLM returned nothing usable for a classification or filter call."""


class PersistenceFailure(NewsSearchError):
    """Reading or writing a persisted JSON document failed."""
