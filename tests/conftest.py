"""Shared fixtures for brain tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from brain.config import BrainConfig, save_config
from brain.inference.base import BaseInferenceClient
from brain.pipeline import Brain
from brain.prompts import PromptRenderer

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


class FakeClient(BaseInferenceClient):
    """Scripted inference client.

    Each ``complete()`` call pops the next reply; an exception instance in
    the reply list is raised instead of returned.
    """

    name = "Fake"

    def __init__(self, replies: list[str | Exception] | None = None) -> None:
        super().__init__(endpoint="http://fake:11434", model="fake-model", timeout=5)
        self.replies: list[str | Exception] = list(replies or [])
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            return ""
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def make_client() -> Callable[..., FakeClient]:
    """Factory for scripted inference clients."""
    return FakeClient


@pytest.fixture
def knowledge_base(tmp_path: Path) -> Path:
    """A small knowledge base.

    ``a.org`` matches "project" and "features", ``b.md`` only "project",
    ``c.txt`` neither. Hidden directories and non-text files also mention
    the terms and must never be returned.
    """
    root = tmp_path / "kb"
    notes = root / "notes"
    notes.mkdir(parents=True)
    (notes / "a.org").write_text(
        "* Roadmap\nThe project has new features.\nMore features soon.\n", encoding="utf-8"
    )
    (notes / "b.md").write_text("# Status\nThis project is small.\n", encoding="utf-8")
    (notes / "c.txt").write_text("Nothing relevant here.\n", encoding="utf-8")

    hidden = root / ".git"
    hidden.mkdir()
    (hidden / "config.org").write_text("project features\n", encoding="utf-8")
    (root / "diagram.png").write_bytes(b"project features")
    return root


@pytest.fixture
def config(knowledge_base: Path) -> BrainConfig:
    """A config pointing at ``knowledge_base``."""
    cfg = BrainConfig()
    cfg.knowledge.root_path = str(knowledge_base)
    cfg.knowledge.max_files = 5
    cfg.knowledge.parallelism = 4
    return cfg


@pytest.fixture
def config_file(tmp_path: Path, config: BrainConfig) -> Path:
    """``config`` saved as TOML."""
    path = tmp_path / "brain" / "config.toml"
    save_config(config, path)
    return path


@pytest.fixture
def prompts() -> PromptRenderer:
    return PromptRenderer()


@pytest.fixture
def make_brain(config: BrainConfig) -> Callable[..., Brain]:
    """Build a Brain around a scripted client: ``make_brain(["kw1\\nkw2", "answer"])``."""

    def _make(replies: list[str | Exception] | None = None) -> Brain:
        return Brain.from_config(config, client=FakeClient(replies))

    return _make
