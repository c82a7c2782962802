from __future__ import annotations

import logging
from typing import Any, Dict

import openai
from openai import OpenAI

from ..config import get_settings
from ..errors import GenerationTimeoutError, ServiceNotConfiguredError, UpstreamServiceError

logger = logging.getLogger(__name__)


def call_openai_responses(
    *,
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_output_tokens: int,
    temperature: float | None = None,
    timeout: float | None = None,
) -> str:
    """Call the OpenAI Responses API and return the combined text output.

    Failures are not retried: the client is built with ``max_retries=0`` so a
    timeout or error status reaches the caller immediately.
    """
    settings = get_settings()
    if not settings.openai_api_key:
        raise ServiceNotConfiguredError()
    client = OpenAI(
        api_key=settings.openai_api_key,
        timeout=timeout or settings.openai_request_timeout_seconds,
        max_retries=0,
    )
    response_payload: Dict[str, Any] = {
        "model": model,
        "input": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_output_tokens": max_output_tokens,
    }
    if temperature is not None:
        response_payload["temperature"] = temperature

    try:
        response = client.responses.create(**response_payload)
    except openai.APITimeoutError as exc:
        logger.error("Timeout calling OpenAI Responses API after %ss", timeout)
        raise GenerationTimeoutError() from exc
    except openai.APIStatusError as exc:
        logger.error("OpenAI Responses API returned %s: %s", exc.status_code, exc.message)
        raise UpstreamServiceError(f"OpenAI API error: {exc.status_code}") from exc
    except openai.APIError as exc:
        logger.error("Error calling OpenAI Responses API: %s", exc)
        raise UpstreamServiceError("Unable to reach OpenAI") from exc

    if getattr(response, "status", "completed") != "completed":
        reason = getattr(getattr(response, "incomplete_details", None), "reason", "unknown")
        logger.error("OpenAI Responses API returned incomplete status: %s", reason)
        raise UpstreamServiceError("Meal generation model did not complete successfully")
    text = _extract_response_text(response)
    if not text:
        raise UpstreamServiceError("Meal generation model returned empty output")
    return text


def _extract_response_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if text:
        return text.strip()
    chunks: list[str] = []
    output = getattr(response, "output", None)
    if output is None and isinstance(response, dict):
        output = response.get("output")
    for block in output or []:
        block_content = getattr(block, "content", None)
        if block_content is None and isinstance(block, dict):
            block_content = block.get("content")
        for content in block_content or []:
            part_text = getattr(content, "text", None)
            if part_text is None and isinstance(content, dict):
                part_text = content.get("text")
            if part_text:
                chunks.append(part_text)
    return "".join(chunks).strip()
