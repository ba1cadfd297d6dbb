"""Custom exception hierarchy for brain."""

from __future__ import annotations

__all__ = [
    "AssemblyError",
    "BrainError",
    "ConfigError",
    "ContentLoadError",
    "InferenceError",
    "PluginError",
    "SearchError",
    "TemplateError",
    "ToolServerError",
]


class BrainError(Exception):
    """Base exception for all brain errors."""


class ConfigError(BrainError):
    """Raised when configuration loading or validation fails."""


class InferenceError(BrainError):
    """Raised when the inference service cannot produce a usable reply.

    ``kind`` is one of ``"transport"``, ``"timeout"``, ``"http"`` or ``"parse"``.
    """

    def __init__(self, message: str, kind: str = "transport") -> None:
        super().__init__(message)
        self.kind = kind


class SearchError(BrainError):
    """Raised when the knowledge base cannot be searched at all."""

    def __init__(self, message: str, failed_terms: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.failed_terms = failed_terms


class ContentLoadError(BrainError):
    """Raised when none of the ranked files could be loaded."""


class AssemblyError(BrainError):
    """Context assembly failure. Assembly is total, so this is never raised."""


class TemplateError(BrainError):
    """Raised when a prompt template is missing or fails to render."""


class PluginError(BrainError):
    """Raised when provider registration or lookup fails."""


class ToolServerError(BrainError):
    """Raised when a tool-server request is malformed.

    ``code`` is the JSON-RPC error code reported to the client.
    """

    def __init__(self, message: str, code: int = -32602) -> None:
        super().__init__(message)
        self.code = code
