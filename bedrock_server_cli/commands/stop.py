"""
Stop command implementation for the Bedrock Server CLI.

## Execution Flow Diagram

```mermaid
sequenceDiagram
    participant CLI as CLI
    participant Stop as stop.py
    participant SM as server_manager.py<br/>(ServerManager)
    participant SV as supervisor.py<br/>(ServerSupervisor)
    participant Screen as screen

    CLI->>Stop: bedrock-server stop
    Stop->>SM: stop_server(force=False, warn_players=True)
    SM->>SV: stop(warn_players=True)
    SV->>SV: is_running() → session AND process
    loop countdown 60, 15, 5
        SV->>Screen: stuff "say Server will shut down in N seconds..."
        SV->>SV: sleep(gap to next warning)
    end
    SV->>Screen: save hold / save query / save resume
    SV->>Screen: stuff "stop"
    SV->>SV: poll is_running() once per second (stop_timeout)
    alt still running
        SV->>Screen: screen -X quit
        SV->>SV: terminate / kill process (psutil)
    end
    SV-->>SM: True when cleared
    SM-->>Stop: success
```

`--force` skips the countdown and the save barrier entirely and kills the
session immediately.
"""

import typer
import logging
from typing_extensions import Annotated

from ..context import AppContext

log = logging.getLogger(__name__)


def stop_server_logic(app_context: AppContext, force: bool = False, warn_players: bool = True) -> bool:
    """Business logic for stopping the server."""
    return app_context.server_manager.stop_server(force=force, warn_players=warn_players)


def stop(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Stop immediately without warnings or a world save."),
    ] = False,
    warn: Annotated[
        bool,
        typer.Option("--warn/--no-warn", help="Warn connected players before shutting down."),
    ] = True,
):
    """Stops the server gracefully, warning players and saving the world first."""
    app_context: AppContext = ctx.obj
    if not stop_server_logic(app_context, force=force, warn_players=warn):
        app_context.display.error(
            "Failed to stop the server",
            "Inspect running processes with 'bedrock-server status' and retry with --force."
        )
        raise typer.Exit(1)
