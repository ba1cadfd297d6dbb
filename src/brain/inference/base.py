"""Abstract base class for inference providers."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from brain.exceptions import InferenceError

__all__ = ["BaseInferenceClient", "normalize_endpoint"]

logger = logging.getLogger(__name__)


def normalize_endpoint(endpoint: str) -> str:
    """Strip trailing slashes and default to ``http://`` when no scheme is given."""
    endpoint = endpoint.strip().rstrip("/")
    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"http://{endpoint}"
    return endpoint


class BaseInferenceClient(ABC):
    """Base class for all inference providers.

    Subclasses submit a prompt and return the model's reply text. Each
    call makes exactly one request; retrying is left to the caller.
    """

    name: str = "inference"

    def __init__(self, endpoint: str, model: str, timeout: float) -> None:
        self._endpoint = normalize_endpoint(endpoint)
        self._model = model
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Submit ``prompt`` and return the reply text.

        Raises:
            InferenceError: On connection failure, timeout, HTTP error,
                or a reply that cannot be decoded.
        """

    def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST ``payload`` as JSON and decode the JSON reply."""
        body = json.dumps(payload).encode("utf-8")
        all_headers = {"Content-Type": "application/json"}
        if headers:
            all_headers.update(headers)
        req = Request(url, data=body, headers=all_headers, method="POST")

        logger.debug("POST %s (%d prompt bytes)", url, len(body))
        try:
            with urlopen(req, timeout=self._timeout) as resp:
                raw = resp.read()
        except HTTPError as e:
            raise InferenceError(
                f"{self.name} API error (HTTP {e.code}): {e.reason}", kind="http"
            ) from e
        except TimeoutError as e:
            raise InferenceError(
                f"{self.name} request to {url} timed out after {self._timeout}s", kind="timeout"
            ) from e
        except URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise InferenceError(
                    f"{self.name} request to {url} timed out after {self._timeout}s",
                    kind="timeout",
                ) from e
            raise InferenceError(
                f"{self.name} not reachable at {self._endpoint}. Error: {e.reason}"
            ) from e
        except OSError as e:
            raise InferenceError(
                f"{self.name} not reachable at {self._endpoint}. Error: {e}"
            ) from e

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InferenceError(
                f"{self.name} returned invalid JSON from {url}", kind="parse"
            ) from e
        if not isinstance(data, dict):
            raise InferenceError(
                f"{self.name} returned an unexpected reply from {url}", kind="parse"
            )
        return data
