import typer
import logging
from typing_extensions import Annotated

from ..context import AppContext
from ..schemas import UpdateOutcome

log = logging.getLogger(__name__)

EXIT_CODES = {
    UpdateOutcome.UP_TO_DATE: 0,
    UpdateOutcome.FRESH_INSTALL: 1,
    UpdateOutcome.LATEST_UNKNOWN: 1,
    UpdateOutcome.UPDATE_AVAILABLE: 2,
    UpdateOutcome.NON_STANDARD_VERSION: 2,
    UpdateOutcome.INSTALLED_NEWER: 3,
}


def check_version_logic(app_context: AppContext):
    """Business logic for comparing the installed and latest versions."""
    decision, release = app_context.server_manager.check_for_update()
    if decision.outcome == UpdateOutcome.UPDATE_AVAILABLE:
        log.warning(decision.reason)
        log.info("Run 'bedrock-server update' to update the server")
    elif decision.outcome == UpdateOutcome.FRESH_INSTALL:
        log.warning(decision.reason)
    else:
        log.info(decision.reason)
    return decision, release


def version(
    ctx: typer.Context,
    detailed: Annotated[
        bool,
        typer.Option("--detailed", "-d", help="Show where the latest version was detected."),
    ] = False,
):
    """
    Compares the installed server version with the latest release.

    Exit codes: 0 up to date, 1 not installed or latest unknown,
    2 update available, 3 installed version is newer than detected.
    """
    app_context: AppContext = ctx.obj
    decision, release = check_version_logic(app_context)
    app_context.display.version_report(decision, release if detailed else None)
    raise typer.Exit(EXIT_CODES[decision.outcome])
