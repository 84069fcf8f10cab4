from typing import Any, Protocol


class JsonCompleter(Protocol):
    """Anything that can answer a prompt with parsed JSON.

    Raises ``ClassificationFailure`` when the reply is missing or unparsable.
    """

    async def complete_json(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> Any: ...
