import logging
from pathlib import Path
from rich.logging import RichHandler
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    DownloadColumn,
    TransferSpeedColumn,
)
from typing import Optional

from .schemas import ServerStatus, CheckReport, UpdateDecision, ReleaseInfo

LOG_FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _format_bytes(size: Optional[int]) -> str:
    if size is None:
        return "N/A"
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}GB"


class Display:
    """
    A centralized display handler for all CLI output.

    LOGGING STANDARDS:

    This module handles structured UI elements (tables, panels, progress bars) and
    configures the logging system. All other modules should use Python's logging
    system for user communication:

    - DEBUG: Internal state changes, probe results (verbose mode only)
    - INFO: User-facing status updates, successful operations
    - WARNING: Recoverable issues, fallback behaviors, detection anomalies
    - ERROR: Failed operations, aborted workflow phases

    Besides the console, log records are appended to the server log file once
    attach_log_file() has been called with the configured path.
    """

    def __init__(self, verbose: bool = False):
        self._console = Console()
        self._verbose = verbose
        self._file_handler: Optional[logging.FileHandler] = None

        # Clear any existing handlers to avoid duplicate logs
        root_logger = logging.getLogger()
        if root_logger.hasHandlers():
            root_logger.handlers.clear()

        logging.basicConfig(
            level="DEBUG" if verbose else "INFO",
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=self._console, rich_tracebacks=True, show_path=verbose, show_level=True)]
        )

    @property
    def verbose(self) -> bool:
        """Returns whether verbose mode is enabled."""
        return self._verbose

    def attach_log_file(self, log_file: Path) -> bool:
        """Appends log records to the given file. Returns False if it is not writable."""
        log = logging.getLogger(__name__)
        if self._file_handler is not None:
            return True
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            log.debug(f"File logging disabled ({log_file}): {e}")
            return False
        handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT, datefmt=LOG_FILE_DATEFMT))
        logging.getLogger().addHandler(handler)
        self._file_handler = handler
        return True

    def success(self, message: str):
        """Prints a success message."""
        self._console.print(f"[bold green]Success:[/] {message}")

    def error(self, message: str, suggestion: Optional[str] = None):
        """Prints an error message and an optional suggestion."""
        error_panel = Panel(
            f"[bold red]Error:[/] {message}\n"
            + (f"\n[bold]Suggestion:[/] {suggestion}" if suggestion else ""),
            border_style="red",
            expand=False,
        )
        self._console.print(error_panel)

    def panel(self, content: str, title: str, border_style: str = "blue"):
        """Prints content within a styled panel."""
        self._console.print(
            Panel(
                content,
                title=f"[bold]{title}[/bold]",
                border_style=border_style,
                expand=False,
            )
        )

    def status(self, server_status: ServerStatus):
        """Displays the formatted status of the server, its install and backups."""
        table = Table(title="Minecraft Bedrock Server Status", show_header=False)
        table.add_column("Item", style="cyan")
        table.add_column("Value")

        table.add_row("Server", "[green]✓ RUNNING[/]" if server_status.is_running else "[red]✗ NOT RUNNING[/]")
        table.add_row("Session", f"{server_status.session_name} ({'active' if server_status.session_exists else 'none'})")
        process = server_status.process
        if process:
            table.add_row("Process ID", str(process.pid))
            table.add_row("CPU %", str(process.cpu_percent) if process.cpu_percent is not None else "N/A")
            table.add_row("Memory (MB)", str(process.memory_mb) if process.memory_mb is not None else "N/A")
            table.add_row("Started", process.started_at.strftime("%Y-%m-%d %H:%M:%S") if process.started_at else "N/A")

        installation = server_status.installation
        table.add_row("Installed version", str(server_status.installed_version))
        if installation.exists:
            table.add_row("Directory", installation.directory)
            executable = "✓ found" if installation.executable_found else "✗ missing"
            if installation.executable_found and not installation.executable_is_executable:
                executable = "✗ not executable"
            table.add_row("Executable", executable)
            if installation.world_count is not None:
                table.add_row("Worlds", str(installation.world_count))
            if installation.world_name:
                world = "✓ found" if installation.world_found else "✗ missing"
                table.add_row(f"World: {installation.world_name}", world)
            for name, present in installation.preserved_files.items():
                table.add_row(f"Config: {name}", "✓" if present else "✗ missing")
            table.add_row("Disk usage", _format_bytes(installation.disk_usage_bytes))
            if installation.record:
                table.add_row("Install date", installation.record.install_date or "unknown")
                if installation.record.download_url:
                    table.add_row("Source URL", installation.record.download_url)
        else:
            table.add_row("Directory", f"[red]✗ not found: {installation.directory}[/]")

        backups = server_status.backups
        if backups.exists:
            table.add_row("Backups", str(len(backups.backups)))
            if backups.backups:
                latest = backups.backups[0]
                table.add_row("Latest backup", f"{latest.name} ({_format_bytes(latest.size_bytes)})")
            table.add_row("Backup disk usage", _format_bytes(backups.disk_usage_bytes))
        else:
            table.add_row("Backups", f"[yellow]✗ directory not found: {backups.directory}[/]")

        if server_status.log.exists:
            table.add_row("Log file", f"{server_status.log.path} ({server_status.log.line_count} lines)")
        else:
            table.add_row("Log file", f"[yellow]✗ not found: {server_status.log.path}[/]")

        self._console.print(table)

        if server_status.log.recent_lines:
            self.panel("\n".join(server_status.log.recent_lines), "Recent log entries", border_style="dim")

    def version_report(self, decision: UpdateDecision, release: Optional[ReleaseInfo] = None):
        """Displays the installed/latest comparison."""
        lines = [
            f"[bold]Installed version:[/] {decision.installed}",
            f"[bold]Latest version:[/]    {decision.latest}",
        ]
        if release and release.download_url:
            lines.append(f"[bold]Source:[/]            {release.source} ({release.download_url})")
        lines.append("")
        lines.append(decision.reason)
        border = "yellow" if decision.update_needed else "green"
        self.panel("\n".join(lines), "Version Comparison", border_style=border)

    def json(self, data: str):
        """Prints pre-formatted JSON to the console."""
        self._console.print(data)

    def check_report(self, report: CheckReport):
        """Displays the results of an environment check."""
        log = logging.getLogger(__name__)
        log.info("Running environment checks...")
        for check in report.checks:
            status = "[bold green]PASSED[/]" if check.passed else "[bold red]FAILED[/]"
            self._console.print(f"{status}: {check.name}")
            if not check.passed and check.details:
                self._console.print(f"  [cyan]Details:[/] {check.details}")
            if not check.passed and check.suggestion:
                self._console.print(f"  [cyan]Suggestion:[/] {check.suggestion}")

    def progress(self):
        """Returns a Rich Progress context manager for downloads."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self._console,
            transient=True,
        )
