"""Inference engine: abstract provider interface and concrete providers."""

from brain.inference.base import BaseInferenceClient
from brain.inference.ollama import OllamaClient
from brain.inference.openai_compat import OpenAICompatClient
from brain.registry import default_registry

__all__ = ["BaseInferenceClient", "OllamaClient", "OpenAICompatClient"]

# Register built-in inference providers
default_registry.register("inference", "ollama", lambda cfg: OllamaClient(cfg))
default_registry.register("inference", "openai", lambda cfg: OpenAICompatClient(cfg))
