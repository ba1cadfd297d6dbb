"""Tests for brain.content module."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from brain.content import ContentLoader, read_text_file
from brain.exceptions import ContentLoadError
from brain.types import FileMatch, RankedFileList

if TYPE_CHECKING:
    from pathlib import Path


def _ranked(*paths: Path) -> RankedFileList:
    return RankedFileList(
        matches=tuple(FileMatch(str(p), float(len(paths) - i)) for i, p in enumerate(paths))
    )


class TestReadTextFile:
    def test_utf8(self, tmp_path: Path):
        path = tmp_path / "a.md"
        path.write_text("héllo", encoding="utf-8")
        assert read_text_file(path) == ("héllo", 6)

    def test_bom_stripped(self, tmp_path: Path):
        path = tmp_path / "a.md"
        path.write_bytes(b"\xef\xbb\xbfhello")
        assert read_text_file(path) == ("hello", 8)

    def test_invalid_utf8_replaced(self, tmp_path: Path):
        path = tmp_path / "a.md"
        path.write_bytes(b"ok \xff end")
        text, size = read_text_file(path)
        assert text == "ok \ufffd end"
        assert size == 8


class TestContentLoader:
    def test_preserves_rank_order(self, knowledge_base: Path):
        notes = knowledge_base / "notes"
        loaded = ContentLoader().load(_ranked(notes / "b.md", notes / "a.org"))
        assert [c.path for c in loaded] == [str(notes / "b.md"), str(notes / "a.org")]
        assert loaded.contents[0].text == "# Status\nThis project is small.\n"
        assert loaded.skipped == ()
        assert loaded.warnings == ()

    def test_missing_file_skipped(self, knowledge_base: Path):
        notes = knowledge_base / "notes"
        loaded = ContentLoader().load(_ranked(notes / "gone.md", notes / "a.org"))

        assert [c.path for c in loaded] == [str(notes / "a.org")]
        assert loaded.skipped == (str(notes / "gone.md"),)
        assert "file not found" in loaded.warnings[0]

    def test_large_file_skipped(self, knowledge_base: Path):
        notes = knowledge_base / "notes"
        loader = ContentLoader(max_file_bytes=40)
        loaded = loader.load(_ranked(notes / "a.org", notes / "b.md"))

        assert [c.path for c in loaded] == [str(notes / "b.md")]
        assert "file too large" in loaded.warnings[0]

    def test_nothing_loadable_raises(self, tmp_path: Path):
        with pytest.raises(ContentLoadError, match="None of the 2 matched files"):
            ContentLoader().load(_ranked(tmp_path / "x.md", tmp_path / "y.md"))

    def test_empty_list(self):
        loaded = ContentLoader().load(RankedFileList())
        assert len(loaded) == 0

    def test_load_paths(self, knowledge_base: Path):
        path = str(knowledge_base / "notes" / "c.txt")
        loaded = ContentLoader().load_paths([path])
        assert loaded.contents[0].path == path
        assert loaded.contents[0].byte_size == len("Nothing relevant here.\n")

    def test_directory_is_not_a_file(self, knowledge_base: Path):
        loaded = ContentLoader().load_paths(
            [str(knowledge_base / "notes"), str(knowledge_base / "notes" / "c.txt")]
        )
        assert loaded.skipped == (str(knowledge_base / "notes"),)

    def test_skipped_file_logged(self, knowledge_base: Path, caplog: pytest.LogCaptureFixture):
        notes = knowledge_base / "notes"
        with caplog.at_level(logging.WARNING, logger="brain.content"):
            ContentLoader().load(_ranked(notes / "gone.md", notes / "a.org"))
        assert "gone.md" in caplog.text

    def test_read_one(self, knowledge_base: Path):
        content = ContentLoader().read_one(knowledge_base / "notes" / "b.md")
        assert content.text == "# Status\nThis project is small.\n"
        assert content.byte_size == 32

    def test_read_one_reports_problem(self, knowledge_base: Path):
        with pytest.raises(ContentLoadError, match="file too large"):
            ContentLoader(max_file_bytes=10).read_one(knowledge_base / "notes" / "b.md")
