import typer
from typing_extensions import Annotated
from .context import AppContext
from .commands.status import status
from .commands.start import start
from .commands.stop import stop
from .commands.restart import restart
from .commands.update import update
from .commands.version import version
from .commands.check import check
from .commands.console import console
from .commands.command import command
from .commands.backup import backup
app = typer.Typer(
    help="A CLI for managing a Minecraft Bedrock dedicated server.",
    add_completion=False,
)

app.command()(status)
app.command()(start)
app.command()(stop)
app.command()(restart)
app.command()(update)
app.command()(version)
app.command()(check)
app.command()(console)
app.command()(command)
app.command()(backup)

@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output for debugging.",
        ),
    ] = False,
):
    """
    Initialize the AppContext and attach it to the Typer context.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
    ctx.obj = AppContext(verbose=verbose)

if __name__ == "__main__":
    app()
