import typer
import logging

from ..context import AppContext

log = logging.getLogger(__name__)


def console(ctx: typer.Context):
    """Attaches to the server console. Detach with Ctrl+A, then D."""
    app_context: AppContext = ctx.obj
    if not app_context.server_manager.attach_console():
        raise typer.Exit(1)
