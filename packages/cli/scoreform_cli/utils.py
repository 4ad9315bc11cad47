from __future__ import annotations

import json
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from scoreform.errors import CompilationError, ExternalToolFailure, InputNotFound

_err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Route library log records to stderr through rich."""
    handler = RichHandler(console=_err_console, show_time=False, show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def handle_error(ctx: typer.Context, e: Exception) -> None:
    """Print a clean error message and exit 1."""
    import yaml
    from pydantic import ValidationError

    verbose = ctx.obj.get("verbose", False) if ctx.obj else False
    json_mode = ctx.obj.get("json", False) if ctx.obj else False

    if isinstance(e, (InputNotFound, CompilationError, ExternalToolFailure)):
        msg = str(e)
    elif isinstance(e, FileNotFoundError):
        msg = f"File not found: {e}"
    elif isinstance(e, yaml.YAMLError):
        msg = f"Invalid YAML: {e}"
    elif isinstance(e, ValidationError):
        msg = f"Invalid configuration: {e}"
    elif isinstance(e, ValueError):
        msg = str(e)
    else:
        msg = f"Error: {e}"

    if json_mode:
        print(json.dumps({"error": msg}))
    else:
        _err_console.print(f"[red]Error:[/red] {escape(msg)}", highlight=False)

    if verbose:
        _err_console.print_exception()

    raise typer.Exit(1)
