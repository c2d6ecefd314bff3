"""Structured extraction calls against Anthropic or OpenAI.

Only the field extractor talks to a model. Callers hand over a reference
document and a pydantic model describing the fields they want back; model
replies that are not clean JSON get a lenient second pass before failing.
"""

import json
import logging
import re
from typing import TypeVar

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from mediscore.config import (
    ANTHROPIC_API_KEY,
    LLM_DEFAULT_TIER,
    LLM_MODEL_FAST,
    LLM_MODEL_HIGH,
    LLM_MODEL_STANDARD,
    LLM_PROVIDER,
    LLM_TIMEOUT_SECONDS,
    OPENAI_API_KEY,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

TIERS = ("fast", "standard", "high")

DEFAULT_MODELS = {
    "anthropic": {
        "fast": "claude-3-haiku-20240307",
        "standard": "claude-3-5-sonnet-20240620",
        "high": "claude-3-5-sonnet-20240620",
    },
    "openai": {
        "fast": "gpt-4o-mini",
        "standard": "gpt-4o",
        "high": "gpt-4o",
    },
}

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def extract_json_object(text: str) -> str:
    """Cut the outermost ``{...}`` out of a model reply, dropping fences and prose."""
    text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text.strip()))
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start:end + 1]


def coerce_fields(data: object, response_model: type[BaseModel]) -> dict:
    """Bend a loosely shaped reply toward ``response_model``.

    List fields accept comma-separated strings. Enumerated fields (anything not
    typed as plain ``str``) are lowercased so "Major" validates as "major".
    """
    if not isinstance(data, dict):
        return {}
    fields = dict(data)
    for name, info in response_model.model_fields.items():
        if name not in fields or fields[name] is None:
            continue
        value = fields[name]
        if getattr(info.annotation, "__origin__", None) is list:
            items = value.split(",") if isinstance(value, str) else value if isinstance(value, list) else [value]
            fields[name] = [str(item).strip() for item in items if str(item).strip()]
        elif isinstance(value, str):
            value = value.strip()
            fields[name] = value if info.annotation is str else value.lower()
    return fields


def detect_provider(setting: str = LLM_PROVIDER) -> str:
    provider = (setting or "auto").lower()
    if provider != "auto":
        return provider
    if ANTHROPIC_API_KEY:
        return "anthropic"
    if OPENAI_API_KEY:
        return "openai"
    return "dummy"


class LLMClient:
    def __init__(self, provider: str | None = None, timeout: float = LLM_TIMEOUT_SECONDS) -> None:
        self.provider = provider or detect_provider()
        self._anthropic = AsyncAnthropic(api_key=ANTHROPIC_API_KEY, timeout=timeout) if ANTHROPIC_API_KEY else None
        self._openai = AsyncOpenAI(api_key=OPENAI_API_KEY, timeout=timeout) if OPENAI_API_KEY else None
        self._overrides = {"fast": LLM_MODEL_FAST, "standard": LLM_MODEL_STANDARD, "high": LLM_MODEL_HIGH}

    def available(self) -> bool:
        return {"anthropic": self._anthropic, "openai": self._openai}.get(self.provider) is not None

    def model_for_tier(self, tier: str | None) -> str:
        tier = (tier or LLM_DEFAULT_TIER or "fast").lower()
        if tier not in TIERS:
            tier = "standard"
        if self._overrides.get(tier):
            return self._overrides[tier]
        return DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])[tier]

    async def _anthropic_fields(self, model: str, system: str, user: str, response_model: type[T], max_tokens: int) -> T:
        message = await self._anthropic.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        raw = extract_json_object("".join(getattr(block, "text", "") for block in message.content))
        try:
            return response_model.model_validate_json(raw)
        except ValidationError:
            logger.debug("Strict parse failed for %s, coercing reply", response_model.__name__)
        return response_model.model_validate(coerce_fields(json.loads(raw), response_model))

    async def _openai_fields(self, model: str, system: str, user: str, response_model: type[T]) -> T:
        response = await self._openai.beta.chat.completions.parse(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format=response_model,
        )
        parsed = response.choices[0].message.parsed
        if parsed is None:
            raise RuntimeError("LLM parse returned no data")
        return parsed

    async def generate_json(
        self,
        *,
        system: str,
        user: str,
        response_model: type[T],
        max_tokens: int = 1024,
        tier: str | None = None,
    ) -> T:
        if not self.available():
            raise RuntimeError("LLM provider unavailable")
        model = self.model_for_tier(tier)
        logger.debug("Extracting %s with %s/%s", response_model.__name__, self.provider, model)
        if self.provider == "anthropic":
            return await self._anthropic_fields(model, system, user, response_model, max_tokens)
        return await self._openai_fields(model, system, user, response_model)


_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
