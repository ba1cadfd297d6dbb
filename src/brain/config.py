"""Configuration system for brain.

Reads ``~/.config/brain/config.toml`` (or an explicit path) into typed
dataclasses with sensible defaults for every value.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

import tomli_w

from brain.exceptions import ConfigError
from brain.registry import default_registry

_T = TypeVar("_T")

__all__ = [
    "CONFIG_ENV_VAR",
    "BrainConfig",
    "InferenceConfig",
    "KnowledgeConfig",
    "McpConfig",
    "PipelineConfig",
    "default_config",
    "default_config_path",
    "dump_config",
    "load_config",
    "resolve_config_path",
    "save_config",
    "validate_config",
]

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BRAIN_CONFIG"


@dataclass
class InferenceConfig:
    """[inference] section."""

    provider: str = "ollama"
    endpoint: str = "http://localhost:11434"
    model: str = "mistral"
    timeout: float = 120.0
    api_key_env: str = ""


@dataclass
class KnowledgeConfig:
    """[knowledge] section."""

    root_path: str = ""
    max_files: int = 5
    parallelism: int = 4
    extensions: list[str] = field(default_factory=lambda: [".org", ".md", ".txt"])
    ignore_case: bool = False
    use_regex: bool = False
    max_file_bytes: int = 5 * 1024 * 1024


@dataclass
class PipelineConfig:
    """[pipeline] section."""

    max_context_length: int = 4096
    max_keywords: int = 8
    round_to_line: bool = False
    inference_retries: int = 0
    templates_dir: str = ""


@dataclass
class McpConfig:
    """[mcp] section."""

    server_name: str = "brain-files"


@dataclass
class BrainConfig:
    """Root configuration combining all sections."""

    inference: InferenceConfig = field(default_factory=InferenceConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    mcp: McpConfig = field(default_factory=McpConfig)

    @property
    def root(self) -> Path:
        """Knowledge-base root with ``~`` expanded."""
        return Path(self.knowledge.root_path).expanduser()


_SECTION_MAP: dict[str, type] = {
    "inference": InferenceConfig,
    "knowledge": KnowledgeConfig,
    "pipeline": PipelineConfig,
    "mcp": McpConfig,
}


def default_config() -> BrainConfig:
    """Return a config with all default values."""
    return BrainConfig()


def default_config_path() -> Path:
    """Return ``~/.config/brain/config.toml``."""
    return Path.home() / ".config" / "brain" / "config.toml"


def resolve_config_path(path: Path | None = None) -> Path:
    """Pick the config file: explicit path, then ``$BRAIN_CONFIG``, then the default."""
    if path is not None:
        return path
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return default_config_path()


def _config_to_dict(config: BrainConfig) -> dict[str, object]:
    """Convert BrainConfig to a nested dict suitable for TOML serialization."""
    return {name: dict(vars(getattr(config, name))) for name in _SECTION_MAP}


def dump_config(config: BrainConfig) -> str:
    """Render the configuration as TOML text."""
    return tomli_w.dumps(_config_to_dict(config))


def save_config(config: BrainConfig, path: Path) -> None:
    """Save configuration to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = _config_to_dict(config)
    try:
        with path.open("wb") as f:
            tomli_w.dump(data, f)
        logger.info("Saved config to %s", path)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise ConfigError(f"Failed to save config to {path}: {e}") from e


def _field_default(f: dataclasses.Field[object]) -> object:
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return f.default


def _check_value(section: str, key: str, value: object, default: object) -> None:
    """Raise ConfigError unless ``value`` has the same TOML type as ``default``."""
    # bool is a subclass of int, so it is checked first and never mixed with numbers.
    if isinstance(default, bool):
        ok, expected = isinstance(value, bool), "a boolean"
    elif isinstance(default, int):
        ok, expected = isinstance(value, int) and not isinstance(value, bool), "an integer"
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        expected = "a number"
    elif isinstance(default, str):
        ok, expected = isinstance(value, str), "a string"
    elif isinstance(default, list):
        ok = isinstance(value, list) and all(isinstance(item, str) for item in value)
        expected = "a list of strings"
    else:
        return
    if not ok:
        raise ConfigError(f"[{section}] {key} must be {expected}, got {value!r}")


def _load_section(section: str, cls: type[_T], data: dict[str, object]) -> _T:
    """Load a dataclass section from a dict, ignoring unknown keys.

    Raises:
        ConfigError: If a known key holds a value of the wrong type.
    """
    fields = {f.name: f for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - set(fields))
    if unknown:
        logger.debug("Ignoring unknown keys in [%s]: %s", section, ", ".join(unknown))
    filtered = {k: v for k, v in data.items() if k in fields}
    for key, value in filtered.items():
        _check_value(section, key, value, _field_default(fields[key]))
    return cls(**filtered)


def load_config(path: Path) -> BrainConfig:
    """Load configuration from a TOML file.

    Missing sections or keys get default values. An ``[ollama]`` section is
    read as ``[inference]``, and a ``max_context_length`` found there is
    honoured unless ``[pipeline]`` sets it too.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = path.read_bytes()
        data = tomllib.loads(raw.decode("utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    # Older config files name the [inference] section [ollama].
    if "inference" not in data and isinstance(data.get("ollama"), dict):
        data["inference"] = data["ollama"]

    config = BrainConfig()
    for name, cls in _SECTION_MAP.items():
        section = data.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ConfigError(f"[{name}] in {path} must be a table")
        setattr(config, name, _load_section(name, cls, section))

    legacy_length = data.get("inference", {}).get("max_context_length")
    if legacy_length is not None and "max_context_length" not in data.get("pipeline", {}):
        _check_value("inference", "max_context_length", legacy_length, 0)
        config.pipeline.max_context_length = legacy_length

    logger.info("Loaded config from %s", path)
    return config


def validate_config(config: BrainConfig) -> BrainConfig:
    """Check values the pipeline depends on.

    Raises:
        ConfigError: On the first invalid value found.
    """
    inference = config.inference
    knowledge = config.knowledge
    pipeline = config.pipeline

    if not default_registry.has_provider("inference", inference.provider):
        available = ", ".join(default_registry.list_providers("inference"))
        raise ConfigError(
            f"Unknown inference provider {inference.provider!r}. Available: {available}"
        )
    if not inference.endpoint.strip():
        raise ConfigError("inference.endpoint must not be empty")
    if not inference.model.strip():
        raise ConfigError("inference.model must not be empty")
    if inference.timeout <= 0:
        raise ConfigError(f"inference.timeout must be > 0, got {inference.timeout}")

    if not knowledge.root_path:
        raise ConfigError("knowledge.root_path is not set")
    root = config.root
    if not root.exists():
        raise ConfigError(f"Knowledge base path does not exist: {root}")
    if not root.is_dir():
        raise ConfigError(f"Knowledge base path is not a directory: {root}")
    if knowledge.max_files < 1:
        raise ConfigError(f"knowledge.max_files must be >= 1, got {knowledge.max_files}")
    if knowledge.parallelism < 1:
        raise ConfigError(f"knowledge.parallelism must be >= 1, got {knowledge.parallelism}")

    if pipeline.max_context_length < 1:
        raise ConfigError(
            f"pipeline.max_context_length must be >= 1, got {pipeline.max_context_length}"
        )
    if pipeline.max_keywords < 1:
        raise ConfigError(f"pipeline.max_keywords must be >= 1, got {pipeline.max_keywords}")
    if pipeline.inference_retries < 0:
        raise ConfigError(
            f"pipeline.inference_retries must be >= 0, got {pipeline.inference_retries}"
        )

    return config
