import typer
import logging
from typing_extensions import Annotated

from ..context import AppContext
from ..errors import BedrockServerError

log = logging.getLogger(__name__)


def backup_server_logic(app_context: AppContext, prune: bool = True) -> bool:
    """Business logic for a manual backup."""
    try:
        archive = app_context.server_manager.create_backup(prune=prune)
    except (BedrockServerError, OSError) as e:
        log.error(f"Backup failed: {e}")
        return False

    if archive is None:
        log.warning("Nothing to back up, the server directory is missing or empty")
        return True
    log.info(f"Backup location: {archive}")
    return True


def backup(
    ctx: typer.Context,
    prune: Annotated[
        bool,
        typer.Option(
            "--prune/--no-prune",
            help="Remove backups older than the configured retention afterwards.",
        ),
    ] = True,
):
    """Creates a compressed backup of the server directory.

    When the server is running, world saving is held while the archive is written.

    Examples:
        bedrock-server backup
        bedrock-server backup --no-prune
    """
    app_context: AppContext = ctx.obj
    if not backup_server_logic(app_context, prune=prune):
        raise typer.Exit(1)
