"""JSON-mode chat completions against an OpenAI-compatible endpoint.

DeepSeek is the default provider; any endpoint speaking the OpenAI chat
completions API works through `ai_base_url`.
"""

import json
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import LLMResponseError, UpstreamTimeoutError
from app.models.analytics import AiModuleConfig

logger = logging.getLogger(__name__)

CLASS_SUMMARY_PREFIX = "class-summary-"
CLASS_SUMMARY_CONFIG = "class-summary"


@dataclass(frozen=True)
class LLMOptions:
    temperature: float
    max_tokens: int
    model: str
    system_prompt: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class LLMResult:
    result: dict
    tokens: int
    model: str


def default_options() -> LLMOptions:
    return LLMOptions(
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
        model=settings.ai_model,
    )


def config_key(scope: str) -> str:
    """Per-class summary scopes share one configuration row."""
    if scope.startswith(CLASS_SUMMARY_PREFIX):
        return CLASS_SUMMARY_CONFIG
    return scope


def load_module_options(db: Session, scope: str) -> LLMOptions:
    """LLM options for a scope, falling back to settings when unconfigured."""
    row = (
        db.query(AiModuleConfig)
        .filter(AiModuleConfig.scope == config_key(scope))
        .first()
    )
    if row is None:
        return default_options()
    return LLMOptions(
        temperature=row.temperature,
        max_tokens=row.max_tokens,
        model=row.model,
        system_prompt=row.system_prompt or None,
        is_active=bool(row.is_active),
    )


def parse_json_content(content: str | None) -> dict:
    """Parse a model reply into a JSON object, tolerating ``` fences."""
    if not content:
        raise LLMResponseError("Empty response from model")
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise LLMResponseError("Model reply is not a JSON object")
    return parsed


def is_configured() -> bool:
    return bool(settings.ai_api_key)


class LLMClient:
    """Thin async wrapper returning parsed JSON plus token usage."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.timeout_seconds = timeout_seconds or settings.ai_timeout_seconds
        self.client = AsyncOpenAI(
            api_key=api_key or settings.ai_api_key,
            base_url=base_url or settings.ai_base_url,
            max_retries=0,
        )

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResult:
        model_name = model or settings.ai_model
        try:
            response = await self.client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=settings.ai_temperature if temperature is None else temperature,
                max_tokens=max_tokens or settings.ai_max_tokens,
                response_format={"type": "json_object"},
                timeout=self.timeout_seconds,
            )
        except openai.APITimeoutError as e:
            raise UpstreamTimeoutError(f"{model_name} timed out after {self.timeout_seconds}s") from e

        content = response.choices[0].message.content if response.choices else None
        tokens = response.usage.total_tokens if response.usage else 0
        result = parse_json_content(content)

        logger.info(f"LLM generation complete | model={model_name} | tokens={tokens}")
        return LLMResult(result=result, tokens=tokens, model=model_name)


def get_llm_client() -> LLMClient | None:
    """Client for the configured provider, or None without an API key."""
    if not is_configured():
        return None
    return LLMClient()
