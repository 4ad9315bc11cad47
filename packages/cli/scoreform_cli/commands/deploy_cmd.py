"""Run the Terraform lifecycle against a generated tree."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from scoreform.deploy import Deployer, Reporter

from scoreform_cli.project import get_project, resolve_terraform_dir
from scoreform_cli.utils import handle_error

console = Console()


class ConsoleReporter(Reporter):
    """Prints orchestrator progress with rich and asks via typer.confirm."""

    def __init__(self, out: Console):
        self.out = out

    def section(self, title: str) -> None:
        self.out.print(f"\n[bold blue]=== {escape(title)} ===[/bold blue]")

    def info(self, message: str) -> None:
        self.out.print(escape(message), highlight=False)

    def success(self, message: str) -> None:
        self.out.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        self.out.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.out.print(f"[red]Error:[/red] {escape(message)}")

    def confirm(self, question: str) -> bool:
        return typer.confirm(question, default=False)


def deploy(
    ctx: typer.Context,
    terraform_dir: Annotated[
        Path | None, typer.Option("--dir", "-d", help="Generated Terraform directory (default: terraform)")
    ] = None,
    auto_approve: Annotated[bool, typer.Option("--auto-approve", help="Skip all confirmations")] = False,
    destroy: Annotated[bool, typer.Option("--destroy", help="Destroy the deployment instead")] = False,
    workspace: Annotated[str | None, typer.Option("--workspace", "-w", help="Terraform workspace")] = None,
) -> None:
    """Deploy (or destroy) the generated infrastructure with Terraform."""
    try:
        _, config = get_project()
        deployer = Deployer(
            resolve_terraform_dir(terraform_dir),
            auto_approve=auto_approve,
            workspace=workspace,
            reporter=ConsoleReporter(console),
            drain_timeout=config.drain_timeout,
        )
        code = deployer.destroy() if destroy else deployer.deploy()
        if code != 0:
            raise typer.Exit(code)

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
