"""Tests for brain.generate module."""

from __future__ import annotations

import pytest

from brain.exceptions import InferenceError
from brain.generate import ResponseGenerator
from brain.types import AssembledContext, ContextEntry


def _context() -> AssembledContext:
    return AssembledContext(
        entries=(
            ContextEntry("/kb/a.org", "The project has new features."),
            ContextEntry("/kb/b.md", "This proj", truncated=True),
        ),
        budget=40,
    )


class TestResponseGenerator:
    def test_generate_strips_reply(self, make_client, prompts):
        client = make_client(["  It has new features.\n"])
        answer = ResponseGenerator(client, prompts).generate("What features?", _context())

        assert answer == "It has new features."
        prompt = client.prompts[0]
        assert "### Source: /kb/a.org" in prompt
        assert "The project has new features." in prompt
        assert "### Source: /kb/b.md (truncated)" in prompt
        assert "What features?" in prompt

    def test_empty_context_still_calls_model(self, make_client, prompts):
        client = make_client(["I found nothing."])
        answer = ResponseGenerator(client, prompts).generate("What?", AssembledContext())

        assert answer == "I found nothing."
        assert len(client.prompts) == 1
        assert "No matching files were found" in client.prompts[0]

    def test_inference_error_propagates(self, make_client, prompts):
        client = make_client([InferenceError("timed out", kind="timeout")])
        with pytest.raises(InferenceError) as exc_info:
            ResponseGenerator(client, prompts).generate("q", _context())
        assert exc_info.value.kind == "timeout"

    def test_build_prompt_keeps_rank_order(self, make_client, prompts):
        prompt = ResponseGenerator(make_client(), prompts).build_prompt("q", _context())
        assert prompt.index("/kb/a.org") < prompt.index("/kb/b.md")
