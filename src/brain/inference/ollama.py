"""Ollama inference provider using the /api/generate endpoint.

Default provider for brain, using a locally running Ollama instance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from brain.exceptions import InferenceError
from brain.inference.base import BaseInferenceClient

if TYPE_CHECKING:
    from brain.config import BrainConfig

__all__ = ["OllamaClient"]

logger = logging.getLogger(__name__)


class OllamaClient(BaseInferenceClient):
    """Inference provider using a local Ollama instance.

    Config fields used::

        [inference]
        provider = "ollama"
        endpoint = "http://localhost:11434"
        model = "mistral"
        timeout = 120
    """

    name = "Ollama"

    def __init__(self, config: BrainConfig) -> None:
        super().__init__(
            endpoint=config.inference.endpoint,
            model=config.inference.model,
            timeout=config.inference.timeout,
        )

    def complete(self, prompt: str) -> str:
        url = f"{self._endpoint}/api/generate"
        data = self._post_json(url, {"model": self._model, "prompt": prompt, "stream": False})

        if "error" in data:
            raise InferenceError(f"Ollama error: {data['error']}", kind="http")

        text = data.get("response")
        if not isinstance(text, str):
            raise InferenceError("Ollama reply has no 'response' text", kind="parse")

        logger.debug(
            "Ollama (%s) replied with %d chars, eval_count=%s",
            self._model,
            len(text),
            data.get("eval_count"),
        )
        return text
