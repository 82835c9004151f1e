import typer
import logging
from typing import List
from typing_extensions import Annotated

from ..context import AppContext

log = logging.getLogger(__name__)


def send_command_logic(app_context: AppContext, text: str) -> bool:
    """Business logic for sending a console command."""
    if not text.strip():
        log.error("No command given")
        return False
    if app_context.server_manager.send_command(text):
        log.info(f"Command sent: {text}")
        return True
    return False


def command(
    ctx: typer.Context,
    words: Annotated[
        List[str],
        typer.Argument(help="Console command to send, e.g. 'say hello' or 'list'."),
    ],
):
    """Sends a command to the running server console."""
    app_context: AppContext = ctx.obj
    if not send_command_logic(app_context, " ".join(words)):
        raise typer.Exit(1)
