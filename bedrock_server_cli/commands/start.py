import typer
import logging

from ..context import AppContext
from ..errors import BedrockServerError

log = logging.getLogger(__name__)


def start_server_logic(app_context: AppContext) -> bool:
    """Business logic for starting the server."""
    try:
        return app_context.server_manager.start_server()
    except BedrockServerError as e:
        app_context.display.error(str(e), "Run 'bedrock-server check' to diagnose the environment.")
        return False


def start(ctx: typer.Context):
    """Starts the server in a detached screen session."""
    app_context: AppContext = ctx.obj
    if not start_server_logic(app_context):
        raise typer.Exit(1)
