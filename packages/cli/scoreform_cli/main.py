import typer

from scoreform_cli import __version__
from scoreform_cli.commands.deploy_cmd import deploy
from scoreform_cli.commands.generate import generate
from scoreform_cli.commands.preview import preview
from scoreform_cli.utils import setup_logging


def _version_callback(value: bool) -> None:
    if value:
        print(f"scoreform {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="scoreform",
    help="Compile SCORE workload specs into Terraform and deploy them",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    setup_logging(verbose)


app.command()(generate)
app.command()(preview)
app.command()(deploy)
