"""Response generation from the query and the assembled context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from brain.exceptions import InferenceError
from brain.prompts import ANSWER_TEMPLATE

if TYPE_CHECKING:
    from brain.inference.base import BaseInferenceClient
    from brain.prompts import PromptRenderer
    from brain.types import AssembledContext

__all__ = ["ResponseGenerator"]

logger = logging.getLogger(__name__)


class ResponseGenerator:
    """Asks the model to answer a query from labelled source excerpts.

    An empty context still produces a model call; the prompt then says that
    no matching files were found.
    """

    def __init__(self, client: BaseInferenceClient, prompts: PromptRenderer) -> None:
        self._client = client
        self._prompts = prompts

    def build_prompt(self, query: str, context: AssembledContext) -> str:
        return self._prompts.render(ANSWER_TEMPLATE, query=query, entries=context.entries)

    def generate(self, query: str, context: AssembledContext) -> str:
        """Return the model's answer text.

        Raises:
            InferenceError: If the inference call fails or the reply is not text.
        """
        if context.is_empty:
            logger.info("Generating an answer without knowledge-base context")
        prompt = self.build_prompt(query, context)
        logger.info(
            "Generating answer from %d sources (%d chars of context)",
            len(context.entries),
            context.size,
        )

        reply = self._client.complete(prompt)
        if not isinstance(reply, str):
            raise InferenceError("Answer reply is not text", kind="parse")
        return reply.strip()
