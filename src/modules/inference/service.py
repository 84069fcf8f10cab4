import json
import logging
import re
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_huggingface import ChatHuggingFace, HuggingFaceEndpoint

from src.modules.news_search.errors import ClassificationFailure

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "meta-llama/Llama-4-Scout-17B-16E-Instruct"

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


def parse_json_response(text: str) -> Any:
    """Parse a model reply that should be JSON, tolerating markdown fences."""
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text.strip())).strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        pass
    # Some models wrap the object in prose; fall back to the outermost braces.
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start:end + 1])
        except ValueError:
            pass
    raise ClassificationFailure(f"Model reply is not JSON: {cleaned[:120]!r}")


class InferenceService:
    """Single-shot completions against a Hugging Face hosted chat model."""

    def __init__(self, token: str, model: str = DEFAULT_MODEL) -> None:
        self._token = token
        self._model = model

    def _build_chat_model(self, temperature: float, max_tokens: int) -> ChatHuggingFace:
        llm = HuggingFaceEndpoint(
            repo_id=self._model,
            huggingfacehub_api_token=self._token,
            provider="auto",
            task="text-generation",
            temperature=temperature,
            max_new_tokens=max_tokens,
        )
        return ChatHuggingFace(llm=llm)

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> str:
        if not self._token:
            raise ClassificationFailure("No Hugging Face token configured")

        messages = [HumanMessage(content=prompt)]
        if system:
            messages.insert(0, SystemMessage(content=system))
        try:
            chat_model = self._build_chat_model(temperature, max_tokens)
            reply = await chat_model.ainvoke(messages)
        except Exception as exc:
            raise ClassificationFailure(f"LLM call failed: {exc}") from exc

        content = reply.content
        if not isinstance(content, str) or not content.strip():
            raise ClassificationFailure("LLM returned an empty reply")
        return content

    async def complete_json(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> Any:
        text = await self.complete(prompt, system, temperature, max_tokens)
        return parse_json_response(text)
