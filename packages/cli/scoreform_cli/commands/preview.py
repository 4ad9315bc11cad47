from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.syntax import Syntax

from scoreform_cli.project import resolve_db_credentials, resolve_spec_path
from scoreform_cli.utils import handle_error

console = Console()


def preview(
    ctx: typer.Context,
    spec_file: Annotated[Path | None, typer.Argument(help="SCORE YAML/JSON file (default: score.yaml)")] = None,
    file: Annotated[
        str | None, typer.Option("--file", "-f", help="Show one generated file, e.g. modules/container/main.tf")
    ] = None,
    strict: Annotated[bool, typer.Option(help="Fail when a workload lacks a required field")] = False,
    db_credentials: Annotated[
        str | None,
        typer.Option("--db-credentials", help="Database password handling: managed or placeholder"),
    ] = None,
) -> None:
    """Print the Terraform that generate would write, without touching disk."""
    try:
        from scoreform import ScoreSpec, compile_spec

        mode = resolve_db_credentials(db_credentials)
        spec = ScoreSpec.from_file(resolve_spec_path(spec_file))
        files = compile_spec(spec, strict=strict, db_credentials=mode).files()

        if file is not None:
            if file not in files:
                raise ValueError(f"No generated file {file!r}. Available: {', '.join(files)}")
            files = {file: files[file]}

        if ctx.obj and ctx.obj.get("json"):
            print(json.dumps(files, indent=2))
            return

        for rel, content in files.items():
            console.rule(f"[bold]{rel}[/bold]")
            console.print(Syntax(content, "hcl", theme="monokai", word_wrap=True))

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
