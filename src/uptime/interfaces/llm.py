"""Minimal async chat-completions client shared by the collaborators."""

from __future__ import annotations

import logging
import re
from typing import Dict, List

import httpx

from ..config import LLMConfig

logger = logging.getLogger(__name__)

Message = Dict[str, str]

_FENCE = re.compile(r"```(?:json)?\n?")
_UNARY_PLUS = re.compile(r":\s*\+(\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)")


def clean_json_text(text: str) -> str:
    """Strip markdown fences and unary ``+`` on numbers from a model reply."""

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE.sub("", cleaned).strip()
    return _UNARY_PLUS.sub(r": \1", cleaned)


class ChatClient:
    def __init__(self, config: LLMConfig | None = None, *, client: httpx.AsyncClient | None = None):
        self.config = config or LLMConfig()
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)
        self._owns_client = client is None

    async def complete(self, messages: List[Message], *, temperature: float) -> str:
        """POST the conversation and return the first choice's content.

        Raises ``httpx.HTTPStatusError`` on a non-2xx reply and ``KeyError`` or
        ``IndexError`` when the body lacks a choice.
        """

        response = await self._client.post(
            f"{self.config.base_url.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            json={
                "model": self.config.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": self.config.max_tokens,
            },
        )
        response.raise_for_status()
        content = response.json()["choices"][0]["message"]["content"]
        logger.debug("chat completion: %d chars", len(content))
        return content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ChatClient", "Message", "clean_json_text"]
