"""CLI interface for brain.

Typer-based command-line interface with Rich output formatting.
"""

from __future__ import annotations

import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from brain import __version__
from brain.config import (
    BrainConfig,
    default_config,
    dump_config,
    load_config,
    resolve_config_path,
    save_config,
    validate_config,
)
from brain.exceptions import BrainError
from brain.mcp import ToolServer
from brain.pipeline import Brain, PipelineController
from brain.prompts import PromptRenderer
from brain.types import ErrorKind, Mode, PipelineResult

__all__ = ["app"]

app = typer.Typer(
    name="brain",
    help="Brain Knowledge System: ask questions about your notes with a local LLM.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format for ``brain ask``."""

    TEXT = "text"
    JSON = "json"


ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Config file (default: $BRAIN_CONFIG or ~/.config/brain/config.toml)",
    ),
]


def _configure_logging(verbose: bool) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging on stderr"),
    ] = False,
) -> None:
    """Brain Knowledge System."""
    _configure_logging(verbose)


def _load_validated(config_path: Path | None) -> BrainConfig:
    return validate_config(load_config(resolve_config_path(config_path)))


@app.command()
def version() -> None:
    """Show brain version."""
    console.print(f"brain {__version__}")


@app.command()
def ask(
    query: Annotated[str, typer.Argument(help="The question to ask your knowledge base")],
    mode: Annotated[
        Mode,
        typer.Option("--mode", "-m", help="Stop after keyword extraction, search, or answer"),
    ] = Mode.GENERATE_RESPONSE,
    fmt: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.TEXT,
    max_files: Annotated[
        int | None,
        typer.Option("--max-files", "-n", min=1, help="Override the maximum number of files"),
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Answer a question from the knowledge base."""
    try:
        config = _load_validated(config_path)
        if max_files is not None:
            config.knowledge.max_files = max_files
        brain = Brain.from_config(config)
    except BrainError as e:
        if fmt is OutputFormat.JSON:
            failed = PipelineResult(mode=mode, error_kind=ErrorKind.CONFIG, error_message=str(e))
            typer.echo(json.dumps(failed.to_dict(), indent=2))
        else:
            console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    controller = PipelineController(brain, inference_retries=config.pipeline.inference_retries)

    if fmt is OutputFormat.JSON:
        result = controller.run(query, mode)
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        with console.status(f"Running {mode.value} on {escape(config.knowledge.root_path)} ..."):
            result = controller.run(query, mode)
        _print_result(result)

    if result.failed:
        raise typer.Exit(code=1)


def _print_result(result: PipelineResult) -> None:
    """Render a pipeline result for the terminal."""
    if result.keywords is not None:
        terms = ", ".join(result.keywords.terms) or "[dim](none)[/dim]"
        console.print(f"[bold]Search terms:[/bold] {terms}")

    if result.matched_files is not None:
        if len(result.matched_files) == 0:
            console.print("[yellow]No matching files found.[/yellow]")
        else:
            table = Table(title=f"Found {len(result.matched_files)} matching files")
            table.add_column("#", style="dim", justify="right")
            table.add_column("File")
            table.add_column("Relevance", justify="right", style="bold")
            table.add_column("Terms", style="dim")
            for rank, match in enumerate(result.matched_files, start=1):
                table.add_row(
                    str(rank),
                    escape(match.path),
                    f"{match.score:.2f}",
                    escape(", ".join(match.matched_terms)),
                )
            console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

    if result.answer is not None:
        console.print("\n[bold]Response:[/bold]")
        console.print(escape(result.answer))

    if result.failed:
        kind = result.error_kind.value if result.error_kind else "Error"
        console.print(f"[red]Failed with {kind}:[/red] {escape(result.error_message or '')}")


@app.command()
def init(
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Knowledge base directory"),
    ] = None,
    model: Annotated[
        str,
        typer.Option("--model", help="Model used for keywords and answers"),
    ] = "",
    endpoint: Annotated[
        str,
        typer.Option("--endpoint", help="Inference service URL"),
    ] = "",
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite an existing config file"),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Write a default config file."""
    path = resolve_config_path(config_path)
    if path.exists() and not force:
        console.print(
            f"[yellow]Config already exists:[/yellow] {path}. "
            "Use [bold]--force[/bold] to overwrite."
        )
        raise typer.Exit(code=1)

    config = default_config()
    if root is not None:
        config.knowledge.root_path = str(root.expanduser().resolve())
    if model:
        config.inference.model = model
    if endpoint:
        config.inference.endpoint = endpoint

    try:
        save_config(config, path)
    except BrainError as e:
        console.print(f"[red]Failed to write config:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Wrote config[/green] to {path}")
    if not config.knowledge.root_path:
        console.print("  Set [bold]knowledge.root_path[/bold] to your notes directory.")
    console.print("\nNext steps:")
    console.print('  brain ask "what did I write about ...?"')


@app.command(name="config")
def config_cmd(config_path: ConfigOption = None) -> None:
    """Show the effective configuration."""
    path = resolve_config_path(config_path)
    try:
        config = load_config(path)
    except BrainError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    console.print(f"[dim]# {path}[/dim]")
    console.print(escape(dump_config(config)), end="")
    _print_templates(config)
    try:
        validate_config(config)
    except BrainError as e:
        console.print(f"[yellow]Warning:[/yellow] {escape(str(e))}")


def _print_templates(config: BrainConfig) -> None:
    templates_dir = config.pipeline.templates_dir
    try:
        prompts = PromptRenderer(Path(templates_dir).expanduser() if templates_dir else None)
    except BrainError as e:
        console.print(f"[yellow]Warning:[/yellow] {escape(str(e))}")
        return

    table = Table(title="Prompt templates")
    table.add_column("Template")
    table.add_column("Source", style="dim")
    for name in prompts.list_templates():
        table.add_row(escape(name), "override" if prompts.is_overridden(name) else "built-in")
    console.print(table)


@app.command()
def mcp(config_path: ConfigOption = None) -> None:
    """Start the stdio tool server."""
    try:
        config = _load_validated(config_path)
        brain = Brain.from_config(config)
    except BrainError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    controller = PipelineController(brain, inference_retries=config.pipeline.inference_retries)
    server = ToolServer(brain, controller, config.mcp.server_name)
    server.serve(sys.stdin, sys.stdout)
