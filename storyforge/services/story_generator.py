"""Client for the hosted chat-completions gateway that drafts story prose."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import openai

LOGGER = logging.getLogger(__name__)


def build_system_prompt(tone: str) -> str:
    """Return the fixed system instruction, parameterised only by ``tone``."""

    return (
        f"You are StoryForge, an expert creative writing assistant specialized in {tone}-style storytelling. \n"
        "Create engaging, vivid prose that captures character emotions and maintains narrative momentum. \n"
        "Focus on showing rather than telling, with rich sensory details and compelling dialogue."
    )


@dataclass
class GenerationOutput:
    text: str
    model: str
    tokens_used: Optional[int] = None


class GatewayStoryGenerator:
    """
    Thin wrapper around an OpenAI-compatible chat completions endpoint.

    The SDK's automatic retries are disabled: a failed call surfaces
    immediately and the caller decides whether to resubmit.
    """

    def __init__(self, base_url: str, api_key: str, model_name: str, timeout: float = 60.0) -> None:
        self.model_name = (model_name or "").strip()
        self.api_key = (api_key or "").strip()
        if not self.model_name:
            raise ValueError("model_name must be a non-empty string.")
        if not self.api_key:
            raise ValueError("api_key must be a non-empty string.")
        self._client = openai.OpenAI(
            api_key=self.api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def generate(self, system_prompt: str, prompt: str) -> GenerationOutput:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string.")

        resp = self._client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        text = self._extract_text_from_chat(resp).strip()
        usage = getattr(resp, "usage", None)
        tokens_used = getattr(usage, "total_tokens", None) if usage is not None else None
        LOGGER.debug("Gateway returned %d characters (tokens=%s)", len(text), tokens_used)
        return GenerationOutput(text=text, model=self.model_name, tokens_used=tokens_used)

    def _extract_text_from_chat(self, resp: Any) -> str:
        choices = getattr(resp, "choices", []) or []
        if not choices:
            return ""
        first = choices[0]
        msg = getattr(first, "message", None)
        if isinstance(msg, dict):
            content = msg.get("content")
        else:
            content = getattr(msg, "content", None)
        if isinstance(content, list):
            parts: List[str] = []
            for p in content:
                if isinstance(p, dict) and p.get("type") == "text":
                    parts.append(str(p.get("text") or ""))
            return "\n".join([p for p in parts if p])
        return str(content or "")
