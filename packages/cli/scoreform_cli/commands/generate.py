"""Compile a SCORE file and write the Terraform tree."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scoreform_cli.project import resolve_db_credentials, resolve_spec_path, resolve_terraform_dir
from scoreform_cli.utils import handle_error

console = Console()


def generate(
    ctx: typer.Context,
    spec_file: Annotated[Path | None, typer.Argument(help="SCORE YAML/JSON file (default: score.yaml)")] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output directory")] = None,
    strict: Annotated[bool, typer.Option(help="Fail when a workload lacks a required field")] = False,
    db_credentials: Annotated[
        str | None,
        typer.Option("--db-credentials", help="Database password handling: managed or placeholder"),
    ] = None,
) -> None:
    """Generate Terraform modules from a SCORE spec."""
    try:
        from scoreform.emitter import generate as generate_project

        mode = resolve_db_credentials(db_credentials)
        spec_path = resolve_spec_path(spec_file)
        output_dir = resolve_terraform_dir(output)

        with console.status(f"Generating Terraform from {spec_path}..."):
            project = generate_project(spec_path, output_dir, strict=strict, db_credentials=mode)

        report = project.report
        if ctx.obj and ctx.obj.get("json"):
            print(
                json.dumps(
                    {
                        "project": project.name,
                        "output_dir": str(output_dir),
                        "files": list(project.files()),
                        "workloads": project.workloads,
                        "missing": [{"workload": m.workload, "field": m.field} for m in report.missing],
                        "ignored": report.ignored,
                        "warnings": report.warnings,
                    },
                    indent=2,
                )
            )
            return

        if project.workloads:
            table = Table(title=f"SCORE project: {project.name}")
            table.add_column("Workload", style="cyan")
            table.add_column("Type")
            table.add_column("Module")
            for name, type_name in project.workloads.items():
                table.add_row(name, type_name, f"./modules/{type_name}")
            console.print(table)
        else:
            console.print(
                f"[yellow]Project {escape(project.name)} declares no workloads; only networking is generated.[/yellow]"
            )

        for m in report.missing:
            console.print(
                f"[yellow]Warning:[/yellow] {m.workload}: required field '{m.field}' missing, "
                'rendered as "undefined"'
            )
        for name, fields in report.ignored.items():
            console.print(f"[dim]{name}: not applied by its module: {', '.join(fields)}[/dim]")
        for w in report.warnings:
            console.print(f"[yellow]Warning:[/yellow] {escape(w)}")

        console.print(f"[green]Wrote {len(project.files())} files to {escape(str(output_dir))}[/green]")
        console.print("Next: review the files, then run [bold]scoreform deploy[/bold]")

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
