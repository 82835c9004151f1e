import time
import shutil
import logging
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional

from .backups import BackupManager
from .display import Display
from .errors import (
    BedrockServerError,
    EnvironmentCheckError,
    VersionDetectionError,
    DownloadError,
    SupervisionError,
)
from .fetcher import PackageFetcher, staging_area
from .installer import ServerInstaller
from .metadata import METADATA_FILE_NAME, read_install_record
from .notifier import NotificationEvent, TelegramNotifier
from .permissions import current_user, is_root, user_exists, chown_path
from .schemas import (
    AppConfig,
    BackupStatus,
    CheckReport,
    EnvironmentCheck,
    InstallationStatus,
    LogStatus,
    ReleaseInfo,
    ServerStatus,
    UpdateDecision,
)
from .supervisor import ServerSupervisor
from .update_decision import decide
from .version_resolver import VersionResolver

log = logging.getLogger(__name__)

RESTART_PAUSE_SECONDS = 5
RECENT_LOG_LINES = 10


class ServerManager:
    """
    Orchestrator for the Bedrock dedicated server.
    Wires version resolution, staging, the install transaction and process supervision together.
    """

    def __init__(self, config: AppConfig, display: Display, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.display = display
        self.sleep = sleep

        self.resolver = VersionResolver(config)
        self.fetcher = PackageFetcher(config, display)
        self.backup_manager = BackupManager(config)
        self.installer = ServerInstaller(config, self.backup_manager)
        self.supervisor = ServerSupervisor(config, sleep=sleep)
        self.notifier = TelegramNotifier(config.notifications)

    @property
    def server_dir(self) -> Path:
        return Path(self.config.server_directory)

    # =============================================================================
    # Environment Validation
    # =============================================================================

    def _privilege_check(self) -> EnvironmentCheck:
        user = current_user()
        passed = is_root() or user == self.config.server_user
        return EnvironmentCheck(
            name="Running as root or the service account",
            passed=passed,
            details=None if passed else f"Current user is '{user}'",
            suggestion=None if passed else f"Run with sudo or as '{self.config.server_user}'",
        )

    def _tool_checks(self) -> List[EnvironmentCheck]:
        tools = ["screen"]
        if current_user() != self.config.server_user:
            tools.append("sudo")
        checks = []
        for tool in tools:
            found = shutil.which(tool) is not None
            checks.append(EnvironmentCheck(
                name=f"'{tool}' is installed",
                passed=found,
                suggestion=None if found else f"Install {tool} with your package manager",
            ))
        return checks

    def run_environment_checks(self) -> CheckReport:
        """Checks everything the server commands rely on."""
        log.debug("Running environment checks...")
        checks = [self._privilege_check(), *self._tool_checks()]

        account_ok = user_exists(self.config.server_user)
        checks.append(EnvironmentCheck(
            name=f"Service account '{self.config.server_user}' exists",
            passed=account_ok,
            suggestion=None if account_ok else f"Create it with: sudo useradd -m {self.config.server_user}",
        ))

        dir_ok = self.server_dir.is_dir()
        checks.append(EnvironmentCheck(
            name="Server directory exists",
            passed=dir_ok,
            details=None if dir_ok else str(self.server_dir),
            suggestion=None if dir_ok else "Run 'bedrock-server update' to install the server",
        ))

        executable = self.server_dir / self.config.server_executable
        exe_ok = executable.is_file() and bool(executable.stat().st_mode & 0o111)
        checks.append(EnvironmentCheck(
            name="Server executable is present and executable",
            passed=exe_ok,
            details=None if exe_ok else str(executable),
            suggestion=None if exe_ok else "Run 'bedrock-server update --force' to reinstall the server",
        ))

        backup_dir = Path(self.config.backup_directory)
        backup_ok = backup_dir.is_dir()
        checks.append(EnvironmentCheck(
            name="Backup directory exists",
            passed=backup_ok,
            details=None if backup_ok else str(backup_dir),
            suggestion=None if backup_ok else f"Create it with: sudo mkdir -p {backup_dir}",
        ))

        api_ok = self.fetcher.validate(self.config.api_url)
        checks.append(EnvironmentCheck(
            name="Download API is reachable",
            passed=api_ok,
            details=None if api_ok else self.config.api_url,
            suggestion=None if api_ok else "Check network connectivity; the download page and fallback URL will be used",
        ))
        return CheckReport(checks=checks)

    def require_environment(self):
        """Raises EnvironmentCheckError when privileges or required tools are missing."""
        for check in [self._privilege_check(), *self._tool_checks()]:
            if not check.passed:
                message = check.name if not check.details else f"{check.name}: {check.details}"
                raise EnvironmentCheckError(f"{message}. {check.suggestion}")

    def _ensure_directories(self):
        for directory in (self.config.backup_directory, self.config.log_directory):
            path = Path(directory)
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise EnvironmentCheckError(f"Could not create directory {path}: {e}") from e
        chown_path(Path(self.config.backup_directory), self.config.server_user)

    # =============================================================================
    # Versions
    # =============================================================================

    def check_for_update(self) -> tuple[UpdateDecision, ReleaseInfo]:
        installed = self.resolver.get_installed_version()
        log.info(f"Installed version: {installed}")
        release = self.resolver.resolve_latest()
        log.info(f"Latest version: {release.version}")
        return decide(installed, release.version), release

    # =============================================================================
    # Status
    # =============================================================================

    def _installation_status(self) -> InstallationStatus:
        if not self.server_dir.is_dir():
            return InstallationStatus(directory=str(self.server_dir), exists=False)

        executable = self.server_dir / self.config.server_executable
        worlds = self.server_dir / "worlds"
        world_count = sum(1 for p in worlds.iterdir() if p.is_dir()) if worlds.is_dir() else None
        try:
            disk_usage = sum(p.stat().st_size for p in self.server_dir.rglob("*") if p.is_file())
        except OSError as e:
            log.debug(f"Could not compute disk usage of {self.server_dir}: {e}")
            disk_usage = None

        return InstallationStatus(
            directory=str(self.server_dir),
            exists=True,
            executable_found=executable.is_file(),
            executable_is_executable=executable.is_file() and bool(executable.stat().st_mode & 0o111),
            world_count=world_count,
            world_name=self.config.world_name,
            world_found=(worlds / self.config.world_name).is_dir(),
            preserved_files={name: (self.server_dir / name).is_file() for name in self.config.preserve_files},
            disk_usage_bytes=disk_usage,
            record=read_install_record(self.server_dir / METADATA_FILE_NAME),
        )

    def _backup_status(self) -> BackupStatus:
        backup_dir = self.backup_manager.backup_dir
        if not backup_dir.is_dir():
            return BackupStatus(directory=str(backup_dir), exists=False)
        return BackupStatus(
            directory=str(backup_dir),
            exists=True,
            backups=self.backup_manager.list_backups(),
            disk_usage_bytes=self.backup_manager.disk_usage(),
        )

    def _log_status(self) -> LogStatus:
        log_file = Path(self.config.log_file)
        if not log_file.is_file():
            return LogStatus(path=str(log_file), exists=False)
        try:
            line_count = 0
            recent = deque(maxlen=RECENT_LOG_LINES)
            with open(log_file, "r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    line_count += 1
                    recent.append(line.rstrip("\n"))
        except OSError as e:
            log.debug(f"Could not read log file {log_file}: {e}")
            return LogStatus(path=str(log_file), exists=True)
        return LogStatus(
            path=str(log_file),
            exists=True,
            size_bytes=log_file.stat().st_size,
            line_count=line_count,
            recent_lines=list(recent),
        )

    def get_server_status(self) -> ServerStatus:
        session_exists = self.supervisor.session_exists()
        process = self.supervisor.get_process_info()
        return ServerStatus(
            is_running=session_exists and process is not None,
            session_name=self.config.session_name,
            session_exists=session_exists,
            process=process,
            installed_version=self.resolver.get_installed_version(),
            installation=self._installation_status(),
            backups=self._backup_status(),
            log=self._log_status(),
        )

    # =============================================================================
    # Process Supervision Delegation
    # =============================================================================

    def is_running(self) -> bool:
        return self.supervisor.is_running()

    def start_server(self) -> bool:
        return self.supervisor.start()

    def stop_server(self, force: bool = False, warn_players: bool = True) -> bool:
        if force:
            return self.supervisor.force_stop()
        return self.supervisor.stop(warn_players=warn_players)

    def restart_server(self) -> bool:
        log.info("Restarting Minecraft Bedrock Server...")
        if not self.supervisor.stop():
            log.error("Failed to stop server, not restarting")
            return False
        self.sleep(RESTART_PAUSE_SECONDS)
        return self.supervisor.start()

    def send_command(self, command: str) -> bool:
        return self.supervisor.send_command(command)

    def attach_console(self) -> bool:
        return self.supervisor.attach_console()

    # =============================================================================
    # Backups
    # =============================================================================

    def create_backup(self, prune: bool = True) -> Optional[Path]:
        """Snapshots the install directory. Saves are held for the duration if the server is running."""
        Path(self.config.backup_directory).mkdir(parents=True, exist_ok=True)
        with self.supervisor.saves_held():
            archive = self.backup_manager.create_backup(self.server_dir)
        if prune:
            self.backup_manager.prune_backups(keep=[archive] if archive else [])
        return archive

    # =============================================================================
    # Update Workflow
    # =============================================================================

    def update_server(self, force: bool = False, force_stop: bool = False) -> bool:
        """
        Runs the full update workflow: resolve, decide, fetch, stop, install, restart.

        Any fatal error aborts the run, is logged and reported through the
        failure notification. Returns True on success (including "no update needed").
        """
        log.info("Starting Minecraft Bedrock Server update process...")
        try:
            self.require_environment()
            self._ensure_directories()

            decision, release = self.check_for_update()
            if not decision.update_needed and not force:
                log.info(decision.reason)
                self.notifier.notify(NotificationEvent.NO_UPDATE, f"Installed version: {decision.installed}")
                return True
            if decision.update_needed:
                log.info(decision.reason)
            else:
                log.info(f"{decision.reason}, reinstalling anyway (--force)")

            download_url = release.download_url
            if not download_url:
                raise VersionDetectionError("No download URL is available for the latest version")

            self.notifier.notify(
                NotificationEvent.UPDATE_START,
                f"Installed: {decision.installed}\nTarget: {decision.latest}",
            )

            if not self.fetcher.validate(download_url):
                raise DownloadError(f"Download URL is not reachable: {download_url}")

            with staging_area(Path(self.config.temp_directory)) as staging_dir:
                archive = self.fetcher.download(download_url, staging_dir)
                staged_dir = self.fetcher.extract(archive, staging_dir)

                was_running = self.supervisor.is_running()
                if was_running:
                    stopped = self.supervisor.force_stop() if force_stop else self.supervisor.stop()
                    if not stopped:
                        raise SupervisionError("Failed to stop the server, aborting update")

                record, snapshot = self.installer.install(staged_dir, download_url, staging_dir)

            self.backup_manager.prune_backups(keep=[snapshot] if snapshot else [])

            if was_running:
                log.info("Restarting server...")
                if not self.supervisor.start():
                    raise SupervisionError("Server files were updated but the server failed to start")
            else:
                log.info("Server was not running before update, leaving it stopped")

        except BedrockServerError as e:
            log.error(f"Update failed during {e.phase}: {e}")
            self.notifier.notify(NotificationEvent.UPDATE_FAILURE, f"Failed during {e.phase}: {e}")
            return False
        except Exception as e:
            log.error(f"Unexpected error during update: {e}", exc_info=True)
            self.notifier.notify(NotificationEvent.UPDATE_FAILURE, f"Unexpected error: {e}")
            return False

        log.info(f"Update completed successfully, now running version {record.version}")
        self.notifier.notify(NotificationEvent.UPDATE_SUCCESS, f"Installed version: {record.version}")
        return True
