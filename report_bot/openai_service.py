from __future__ import annotations

import asyncio
import logging
from typing import Any

from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from .constants import REPORT_DISPLAY

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4


class OpenAIServiceError(RuntimeError):
    pass


class OpenAIService:
    """General museum assistant used when a message is not a report request."""

    def __init__(self, api_key: str, model: str) -> None:
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def _responses_create_with_retry(self, **kwargs: Any) -> Any:
        delay = 1.0
        last_error: Exception | None = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return await self.client.responses.create(**kwargs)
            except (RateLimitError, APITimeoutError) as exc:
                last_error = exc
                logger.warning(
                    "OpenAI transient error (%s), attempt %s/%s",
                    exc.__class__.__name__,
                    attempt,
                    MAX_ATTEMPTS,
                )
            except APIError as exc:
                last_error = exc
                if getattr(exc, "status_code", 500) < 500:
                    break
                logger.warning("OpenAI server error, attempt %s/%s: %s", attempt, MAX_ATTEMPTS, exc)

            if attempt < MAX_ATTEMPTS:
                await asyncio.sleep(delay)
                delay *= 2

        raise OpenAIServiceError(f"OpenAI request failed: {last_error}")

    @staticmethod
    def _extract_text(response: Any) -> str:
        output_text = getattr(response, "output_text", None)
        if isinstance(output_text, str) and output_text.strip():
            return output_text.strip()

        parts: list[str] = []
        for item in getattr(response, "output", None) or []:
            for content in getattr(item, "content", []) or []:
                text = getattr(content, "text", None)
                if isinstance(text, str) and text.strip():
                    parts.append(text.strip())
        return "\n".join(parts)

    @staticmethod
    def _system_prompt() -> str:
        reports = ", ".join(REPORT_DISPLAY.values())
        return (
            "You are the assistant of a museum management system. Answer questions about "
            "museum operations briefly and in plain language. When the user seems to want data, "
            f"suggest one of the reports the system can build: {reports}. "
            "Never invent figures; say that a report is needed to get them."
        )

    async def chat_reply(self, message: str, history: list[dict[str, str]]) -> str:
        conversation = [
            {"role": item["role"], "content": [{"type": _content_type(item["role"]), "text": item["content"]}]}
            for item in history
            if item.get("content")
        ]

        response = await self._responses_create_with_retry(
            model=self.model,
            input=[
                {"role": "system", "content": [{"type": "input_text", "text": self._system_prompt()}]},
                *conversation,
                {"role": "user", "content": [{"type": "input_text", "text": message}]},
            ],
            temperature=0.4,
        )

        reply = self._extract_text(response)
        if not reply:
            raise OpenAIServiceError("Model returned an empty reply")
        return reply


def _content_type(role: str) -> str:
    return "output_text" if role == "assistant" else "input_text"
