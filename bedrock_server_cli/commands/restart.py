import typer
import logging

from ..context import AppContext
from ..errors import BedrockServerError

log = logging.getLogger(__name__)


def restart_server_logic(app_context: AppContext) -> bool:
    """Business logic for restarting the server."""
    try:
        return app_context.server_manager.restart_server()
    except BedrockServerError as e:
        app_context.display.error(str(e), "Run 'bedrock-server check' to diagnose the environment.")
        return False


def restart(ctx: typer.Context):
    """Gracefully stops the server, then starts it again."""
    app_context: AppContext = ctx.obj
    if not restart_server_logic(app_context):
        raise typer.Exit(1)
