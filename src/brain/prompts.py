"""Jinja2 prompt templates for the inference calls.

Loads prompt templates from an optional user-override directory and the
built-in ``brain/templates/`` directory. Overrides take precedence.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import jinja2

from brain.exceptions import TemplateError

__all__ = [
    "ANSWER_TEMPLATE",
    "KEYWORDS_TEMPLATE",
    "PromptRenderer",
]

logger = logging.getLogger(__name__)

KEYWORDS_TEMPLATE = "keywords.txt.j2"
ANSWER_TEMPLATE = "answer.txt.j2"


class PromptRenderer:
    """Jinja2 environment for prompt text.

    Template search order:
      1. ``override_dir`` (``[pipeline] templates_dir``, optional)
      2. ``brain/templates/`` (built-in, always present)

    Args:
        override_dir: Directory with user template overrides.
    """

    def __init__(self, override_dir: Path | None = None) -> None:
        from importlib.resources import files

        search_paths: list[str] = []
        self._override_dir = override_dir

        if override_dir is not None:
            if override_dir.is_dir():
                search_paths.append(str(override_dir))
                logger.info("Prompt template overrides enabled: %s", override_dir)
            else:
                logger.warning("Prompt template directory not found: %s", override_dir)

        builtin_dir = Path(str(files("brain") / "templates"))
        if not builtin_dir.is_dir():
            raise TemplateError(
                "Built-in template directory not found, installation may be corrupted"
            )
        search_paths.append(str(builtin_dir))

        self._loader = jinja2.FileSystemLoader(search_paths)
        self._env = jinja2.Environment(
            loader=self._loader,
            autoescape=False,
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, **context: Any) -> str:
        """Render a prompt template.

        Raises:
            TemplateError: If the template is not found or rendering fails.
        """
        try:
            template = self._env.get_template(template_name)
        except jinja2.TemplateNotFound as e:
            raise TemplateError(f"Template not found: {template_name}") from e

        try:
            return template.render(**context)
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render template {template_name}: {e}") from e

    def list_templates(self) -> list[str]:
        return sorted(self._loader.list_templates())

    def is_overridden(self, template_name: str) -> bool:
        """Check if a template has a user override."""
        if self._override_dir is None:
            return False
        return (self._override_dir / template_name).is_file()
