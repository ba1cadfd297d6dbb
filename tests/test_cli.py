"""Tests for brain.cli module."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import patch
from urllib.error import URLError

from typer.testing import CliRunner

from brain import __version__
from brain.cli import app
from brain.config import load_config, save_config

if TYPE_CHECKING:
    from pathlib import Path

    from brain.config import BrainConfig

runner = CliRunner()


class _FakeResponse:
    """Minimal mock for urllib.request.urlopen return value."""

    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *args: object) -> None:
        pass


def _ollama(text: str) -> _FakeResponse:
    return _FakeResponse(json.dumps({"response": text, "done": True}).encode("utf-8"))


def _json_output(output: str) -> dict[str, Any]:
    """Decode the JSON document in ``output``, skipping any log lines before it."""
    lines = output.splitlines()
    start = lines.index("{")
    document, _ = json.JSONDecoder().raw_decode("\n".join(lines[start:]))
    return document


class TestVersion:
    def test_prints_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"brain {__version__}" in result.output


class TestAsk:
    def test_json_answer(self, config_file: Path, knowledge_base: Path):
        replies = [_ollama("project\nfeatures"), _ollama("It has new features.")]
        with patch("brain.inference.base.urlopen", side_effect=replies):
            result = runner.invoke(
                app,
                [
                    "ask",
                    "What are the project features?",
                    "--format",
                    "json",
                    "--config",
                    str(config_file),
                ],
            )

        assert result.exit_code == 0
        data = _json_output(result.output)
        assert data["status"] == "answered"
        assert data["keywords"] == ["project", "features"]
        assert data["matched_files"][0] == {
            "path": str(knowledge_base / "notes" / "a.org"),
            "score": 2.0,
        }
        assert data["answer"] == "It has new features."
        assert len(data["cited_files"]) == 2

    def test_search_only_makes_one_call(self, config_file: Path):
        with patch(
            "brain.inference.base.urlopen", side_effect=[_ollama("project")]
        ) as mock_urlopen:
            result = runner.invoke(
                app,
                ["ask", "project?", "-m", "search-only", "-f", "json", "-c", str(config_file)],
            )

        assert result.exit_code == 0
        assert mock_urlopen.call_count == 1
        data = _json_output(result.output)
        assert data["mode"] == "search-only"
        assert len(data["matched_files"]) == 2
        assert data["answer"] is None

    def test_max_files_override(self, config_file: Path):
        with patch("brain.inference.base.urlopen", side_effect=[_ollama("project")]):
            result = runner.invoke(
                app,
                ["ask", "q", "-m", "search-only", "-f", "json", "-n", "1", "-c", str(config_file)],
            )

        assert result.exit_code == 0
        assert len(_json_output(result.output)["matched_files"]) == 1

    def test_inference_failure_exits_nonzero(self, config_file: Path):
        replies = [_ollama("project"), URLError(ConnectionRefusedError(111, "refused"))]
        with patch("brain.inference.base.urlopen", side_effect=replies):
            result = runner.invoke(
                app, ["ask", "q", "--format", "json", "--config", str(config_file)]
            )

        assert result.exit_code == 1
        data = _json_output(result.output)
        assert data["status"] == "failed"
        assert data["error_kind"] == "InferenceError"
        assert len(data["matched_files"]) == 2

    def test_text_output(self, config_file: Path):
        replies = [_ollama("project\nfeatures"), _ollama("It has new features.")]
        with patch("brain.inference.base.urlopen", side_effect=replies):
            result = runner.invoke(app, ["ask", "features?", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Search terms:" in result.output
        assert "project, features" in result.output
        assert "Found 2 matching files" in result.output
        assert "Response:" in result.output
        assert "It has new features." in result.output

    def test_missing_config_json(self, tmp_path: Path):
        result = runner.invoke(
            app, ["ask", "q", "--format", "json", "--config", str(tmp_path / "none.toml")]
        )
        assert result.exit_code == 1
        data = _json_output(result.output)
        assert data["error_kind"] == "ConfigError"
        assert data["status"] == "failed"

    def test_wrong_type_is_config_error(self, tmp_path: Path, knowledge_base: Path):
        path = tmp_path / "config.toml"
        path.write_text(
            f'[knowledge]\nroot_path = "{knowledge_base}"\nmax_files = "5"\n', encoding="utf-8"
        )
        result = runner.invoke(app, ["ask", "q", "--format", "json", "--config", str(path)])

        assert result.exit_code == 1
        data = _json_output(result.output)
        assert data["error_kind"] == "ConfigError"
        assert "max_files" in data["error_message"]

    def test_missing_config_text(self, tmp_path: Path):
        result = runner.invoke(app, ["ask", "q", "--config", str(tmp_path / "none.toml")])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestInit:
    def test_writes_config(self, tmp_path: Path, knowledge_base: Path):
        path = tmp_path / "cfg" / "config.toml"
        result = runner.invoke(
            app,
            ["init", "--root", str(knowledge_base), "--model", "llama3", "--config", str(path)],
        )

        assert result.exit_code == 0
        assert "Wrote config" in result.output
        config = load_config(path)
        assert config.knowledge.root_path == str(knowledge_base.resolve())
        assert config.inference.model == "llama3"

    def test_refuses_to_overwrite(self, config_file: Path):
        result = runner.invoke(app, ["init", "--config", str(config_file)])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_force_overwrites(self, config_file: Path):
        result = runner.invoke(app, ["init", "--force", "--config", str(config_file)])
        assert result.exit_code == 0
        assert load_config(config_file).knowledge.root_path == ""

    def test_honours_env_var(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "env" / "config.toml"
        monkeypatch.setenv("BRAIN_CONFIG", str(path))
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert path.is_file()


class TestConfigCommand:
    def test_shows_config(self, config_file: Path):
        result = runner.invoke(app, ["config", "--config", str(config_file)])
        assert result.exit_code == 0
        assert "[inference]" in result.output
        assert "[knowledge]" in result.output

    def test_lists_prompt_templates(self, config_file: Path):
        result = runner.invoke(app, ["config", "--config", str(config_file)])
        assert "Prompt templates" in result.output
        assert "keywords.txt.j2" in result.output
        assert "answer.txt.j2" in result.output
        assert "override" not in result.output

    def test_marks_overridden_templates(self, tmp_path: Path, config: BrainConfig):
        overrides = tmp_path / "prompts"
        overrides.mkdir()
        (overrides / "keywords.txt.j2").write_text("{{ query }}", encoding="utf-8")
        config.pipeline.templates_dir = str(overrides)
        path = tmp_path / "config.toml"
        save_config(config, path)

        result = runner.invoke(app, ["config", "--config", str(path)])

        assert result.exit_code == 0
        line = next(ln for ln in result.output.splitlines() if "keywords.txt.j2" in ln)
        assert "override" in line
        answer_line = next(ln for ln in result.output.splitlines() if "answer.txt.j2" in ln)
        assert "built-in" in answer_line

    def test_warns_on_invalid_config(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text('[inference]\nmodel = "phi3"\n', encoding="utf-8")
        result = runner.invoke(app, ["config", "--config", str(path)])
        assert result.exit_code == 0
        assert "root_path is not set" in result.output

    def test_missing_file(self, tmp_path: Path):
        result = runner.invoke(app, ["config", "--config", str(tmp_path / "none.toml")])
        assert result.exit_code == 1
        assert "Configuration error" in result.output
