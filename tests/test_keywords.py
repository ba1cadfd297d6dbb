"""Tests for brain.keywords module."""

from __future__ import annotations

import pytest

from brain.exceptions import InferenceError
from brain.keywords import KeywordExtractor, parse_keywords


class TestParseKeywords:
    def test_one_per_line(self):
        assert parse_keywords("project\nfeatures\n") == ["project", "features"]

    def test_comma_separated(self):
        assert parse_keywords("project, features; roadmap") == ["project", "features", "roadmap"]

    def test_bullets_and_numbers(self):
        reply = "- project\n* features\n1. roadmap\n2) rust\n(3) lifetimes"
        assert parse_keywords(reply) == ["project", "features", "roadmap", "rust", "lifetimes"]

    def test_intro_line_dropped(self):
        reply = "Here are the keywords:\n\nproject\nfeatures"
        assert parse_keywords(reply) == ["project", "features"]

    def test_labelled_line_keeps_values(self):
        assert parse_keywords("Keywords: project, features") == ["project", "features"]

    def test_quotes_and_trailing_period(self):
        assert parse_keywords('"project"\n`features`.\n') == ["project", "features"]

    def test_bold_list_items(self):
        reply = "Here are the keywords:\n1. **project**\n2. **features**"
        assert parse_keywords(reply) == ["project", "features"]

    def test_emphasis_markers_removed(self):
        reply = "- *roadmap*\n- __status__\n_notes_, **small**."
        assert parse_keywords(reply) == ["roadmap", "status", "notes", "small"]

    def test_bold_label(self):
        assert parse_keywords("**Keywords:** project, features") == ["project", "features"]

    def test_code_fence_ignored(self):
        assert parse_keywords("```\nproject\n```") == ["project"]

    def test_multi_word_terms_kept(self):
        assert parse_keywords("borrow checker") == ["borrow checker"]

    def test_sentences_dropped(self):
        reply = "I think these are the most relevant terms for you\nproject"
        assert parse_keywords(reply) == ["project"]

    def test_empty_reply(self):
        assert parse_keywords("") == []
        assert parse_keywords("   \n\n") == []


class TestKeywordExtractor:
    def test_extract(self, make_client, prompts):
        client = make_client(["project\nfeatures\nproject"])
        extractor = KeywordExtractor(client, prompts, max_keywords=8)

        keywords = extractor.extract("What are the project features?")

        assert keywords.terms == ("project", "features")
        assert len(client.prompts) == 1
        assert "What are the project features?" in client.prompts[0]
        assert "at most 8 keywords" in client.prompts[0]

    def test_limit(self, make_client, prompts):
        extractor = KeywordExtractor(make_client(["a\nb\nc\nd"]), prompts, max_keywords=2)
        assert extractor.extract("q").terms == ("a", "b")

    def test_empty_reply_gives_empty_set(self, make_client, prompts):
        extractor = KeywordExtractor(make_client(["\n"]), prompts)
        assert extractor.extract("q").is_empty

    def test_inference_error_propagates(self, make_client, prompts):
        client = make_client([InferenceError("down", kind="transport")])
        extractor = KeywordExtractor(client, prompts)
        with pytest.raises(InferenceError, match="down"):
            extractor.extract("q")

    def test_non_text_reply(self, make_client, prompts):
        client = make_client()
        client.replies.append(None)  # type: ignore[arg-type]
        extractor = KeywordExtractor(client, prompts)
        with pytest.raises(InferenceError) as exc_info:
            extractor.extract("q")
        assert exc_info.value.kind == "parse"
