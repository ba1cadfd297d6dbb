"""OpenAI-compatible inference provider.

Works with any server implementing the /v1/chat/completions API:
OpenAI, LiteLLM proxy, vLLM, llama.cpp server, Ollama (OpenAI-compat mode), etc.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from brain.exceptions import InferenceError
from brain.inference.base import BaseInferenceClient

if TYPE_CHECKING:
    from brain.config import BrainConfig

__all__ = ["OpenAICompatClient"]

logger = logging.getLogger(__name__)


class OpenAICompatClient(BaseInferenceClient):
    """Inference provider for OpenAI-compatible chat-completion servers.

    The endpoint is the API base (e.g. ``http://localhost:8000/v1``).

    Config fields used::

        [inference]
        provider = "openai"
        endpoint = "https://api.openai.com/v1"
        model = "gpt-4o-mini"
        api_key_env = "OPENAI_API_KEY"   # env var name; empty = no auth
    """

    name = "OpenAI-compatible server"

    def __init__(self, config: BrainConfig) -> None:
        super().__init__(
            endpoint=config.inference.endpoint,
            model=config.inference.model,
            timeout=config.inference.timeout,
        )
        self._api_key: str | None = None
        if config.inference.api_key_env:
            self._api_key = os.environ.get(config.inference.api_key_env)
            if not self._api_key:
                logger.warning(
                    "API key env var %s is not set; sending requests without auth",
                    config.inference.api_key_env,
                )

    def complete(self, prompt: str) -> str:
        url = f"{self._endpoint}/chat/completions"
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else None
        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }
        data = self._post_json(url, payload, headers=headers)

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise InferenceError(
                "OpenAI-compatible reply has no choices[0].message.content", kind="parse"
            ) from e
        if not isinstance(text, str):
            raise InferenceError("OpenAI-compatible reply content is not text", kind="parse")

        logger.debug("%s (%s) replied with %d chars", self.name, self._model, len(text))
        return text
