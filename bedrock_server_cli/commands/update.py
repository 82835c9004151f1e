"""
Update command implementation for the Bedrock Server CLI.

## Execution Flow Diagram

```mermaid
sequenceDiagram
    participant CLI as CLI
    participant Update as update.py
    participant SM as server_manager.py<br/>(ServerManager)
    participant VR as version_resolver.py
    participant PF as fetcher.py
    participant SV as supervisor.py
    participant IN as installer.py
    participant TG as notifier.py

    CLI->>Update: bedrock-server update [--force] [--force-stop]
    Update->>SM: update_server(force, force_stop)
    SM->>SM: require_environment()
    SM->>VR: get_installed_version(), resolve_latest()
    SM->>SM: decide(installed, latest)
    alt no update needed and not --force
        SM->>TG: notify(no_update)
        SM-->>Update: True
    end
    SM->>TG: notify(update_start)
    SM->>PF: validate(url)
    Note over SM,PF: staging_area(temp_directory)
    SM->>PF: download(), extract()
    SM->>SV: is_running(), stop() / force_stop()
    SM->>IN: install(staged_dir) → snapshot, preserve, purge, replace, restore, metadata
    Note over SM,PF: staging directory removed
    SM->>SM: prune_backups(keep=snapshot)
    opt was running
        SM->>SV: start()
    end
    SM->>TG: notify(update_success | update_failure)
    SM-->>Update: success
```
"""

import typer
import logging
from typing_extensions import Annotated

from ..context import AppContext

log = logging.getLogger(__name__)


def update_server_logic(app_context: AppContext, force: bool = False, force_stop: bool = False) -> bool:
    """Business logic for updating the server."""
    return app_context.server_manager.update_server(force=force, force_stop=force_stop)


def update(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option("--force", help="Reinstall even when the installed version is current."),
    ] = False,
    force_stop: Annotated[
        bool,
        typer.Option("--force-stop", help="Kill a running server instead of stopping it gracefully."),
    ] = False,
):
    """
    Downloads and installs the latest server release.

    A running server is stopped, a backup of the installation is taken,
    configuration and worlds are carried over, and the server is started
    again if it was running before.
    """
    app_context: AppContext = ctx.obj
    if not update_server_logic(app_context, force=force, force_stop=force_stop):
        app_context.display.error(
            "Update failed",
            f"See {app_context.config.app_config.log_file} for details. Backups are kept in "
            f"{app_context.config.app_config.backup_directory}."
        )
        raise typer.Exit(1)
    app_context.display.success("Update process finished")
