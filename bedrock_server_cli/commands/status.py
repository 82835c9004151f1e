"""
Status command implementation for the Bedrock Server CLI.

Gathers liveness, process statistics, install directory health, backups and
log file details through ServerManager and renders them as a table or JSON.
"""

import typer
import logging
from typing_extensions import Annotated

from ..context import AppContext
from ..schemas import ServerStatus

log = logging.getLogger(__name__)


def get_server_status_logic(app_context: AppContext) -> ServerStatus:
    """Business logic for gathering server status."""
    log.info("Gathering server status...")
    server_status = app_context.server_manager.get_server_status()

    if server_status.is_running:
        log.info("Server is running")
    elif server_status.session_exists:
        log.warning("Screen session exists but no server process was found")
    else:
        log.info("Server is not running")

    return server_status


def status(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
):
    """
    Displays server status, installation health, backups and recent log entries.

    Examples:
        bedrock-server status
        bedrock-server status --json
    """
    app_context: AppContext = ctx.obj

    try:
        server_status = get_server_status_logic(app_context)
        if json_output:
            app_context.display.json(server_status.model_dump_json())
        else:
            app_context.display.status(server_status)
    except Exception as e:
        log.error(f"Failed to get server status: {e}")
        app_context.display.error(
            f"Unable to retrieve server status: {e}",
            "Check that screen is installed and the configured directories are readable."
        )
        raise typer.Exit(1)
