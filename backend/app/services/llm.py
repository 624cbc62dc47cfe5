import json
import logging
import re
from typing import Any
from openai import AsyncOpenAI, BadRequestError, OpenAIError, UnprocessableEntityError
from app.core.config import get_settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMError(Exception):
    """Raised when the provider fails or returns an unusable answer."""


class EmptyResponseError(LLMError):
    pass


def get_openai_settings() -> dict[str, str]:
    """Resolve provider settings, normalizing the base URL to end in /v1."""
    settings = get_settings()
    base_url = (settings.openai_base_url or "https://api.openai.com/v1").rstrip("/")
    if not base_url.endswith("/v1") and "/v1/" not in base_url:
        base_url = f"{base_url}/v1"
    return {
        "base_url": base_url,
        "api_key": settings.openai_api_key or "",
        "model": settings.openai_model,
    }


def _client(openai_settings: dict[str, str]) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=openai_settings["api_key"] or None,
        base_url=openai_settings["base_url"] or None,
        timeout=get_settings().openai_timeout_seconds,
    )


def json_schema_format(name: str, schema: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": name, "strict": True, "schema": schema},
    }


async def invoke_llm(
    messages: list[dict[str, str]],
    *,
    response_format: dict[str, Any] | None = None,
    temperature: float = 0.7,
    max_tokens: int | None = None,
) -> str:
    """Run one chat completion and return the message text.

    Providers that reject ``response_format`` are retried once without it.
    """
    openai_settings = get_openai_settings()
    payload: dict[str, Any] = {
        "model": openai_settings["model"],
        "messages": messages,
        "temperature": temperature,
    }
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    try:
        client = _client(openai_settings)
        try:
            if response_format is not None:
                completion = await client.chat.completions.create(
                    **payload, response_format=response_format
                )
            else:
                completion = await client.chat.completions.create(**payload)
        except (BadRequestError, UnprocessableEntityError):
            if response_format is None:
                raise
            # Some OpenAI-compatible providers don't support response_format.
            logger.warning("Provider rejected response_format, retrying without it", exc_info=True)
            completion = await client.chat.completions.create(**payload)
    except OpenAIError as e:
        logger.exception("LLM request failed")
        raise LLMError(f"LLM request failed: {e}") from e

    choices = completion.choices or []
    content = (choices[0].message.content if choices else None) or ""
    if not content.strip():
        raise EmptyResponseError("LLM returned an empty response")
    return content


def parse_json_content(content: str) -> dict[str, Any]:
    text = _FENCE_RE.sub("", content.strip()).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models without schema support sometimes wrap JSON in prose
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise LLMError("LLM response is not valid JSON")
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise LLMError("LLM response is not valid JSON") from e
    if not isinstance(data, dict):
        raise LLMError("LLM response is not a JSON object")
    return data


async def invoke_llm_json(
    messages: list[dict[str, str]],
    *,
    schema_name: str,
    schema: dict[str, Any],
    temperature: float = 0.3,
    max_tokens: int | None = None,
) -> dict[str, Any]:
    content = await invoke_llm(
        messages,
        response_format=json_schema_format(schema_name, schema),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return parse_json_content(content)
