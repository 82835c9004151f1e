import re
import time
import shlex
import logging
import subprocess
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import psutil

from .errors import EnvironmentCheckError
from .permissions import current_user
from .schemas import AppConfig, ProcessInfo

log = logging.getLogger(__name__)

PROBE_TIMEOUT = 5
SIGNAL_TIMEOUT = 10

SHUTDOWN_WARNING = "say Server will shut down in {seconds} seconds. Please save your progress!"
# Command and the pause that follows it
SAVE_BARRIER = [("save hold", 2), ("save query", 3), ("save resume", 2)]


class ServerSupervisor:
    """
    Runs the server executable inside a named screen session owned by the service account.

    Liveness is never cached: every query re-probes the session list and the
    process table. The server counts as running only when both the session
    and a matching process exist.
    """

    def __init__(self, config: AppConfig, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.sleep = sleep

    @property
    def server_dir(self) -> Path:
        return Path(self.config.server_directory)

    def _command_prefix(self) -> List[str]:
        """Commands run as the service account; sudo is only needed when we are someone else."""
        if current_user() == self.config.server_user:
            return []
        return ["sudo", "-u", self.config.server_user]

    def _run(self, args: List[str], timeout: Optional[float] = PROBE_TIMEOUT, **kwargs) -> Optional[subprocess.CompletedProcess]:
        full_cmd = self._command_prefix() + args
        try:
            return subprocess.run(full_cmd, capture_output=True, text=True, timeout=timeout, **kwargs)
        except (OSError, subprocess.SubprocessError) as e:
            log.debug(f"Command `{' '.join(full_cmd)}` failed: {e}")
            return None

    # =============================================================================
    # Probes
    # =============================================================================

    def session_exists(self) -> bool:
        result = self._run(["screen", "-list"])
        if result is None:
            return False
        # screen -list exits non-zero in several normal situations, only the listing matters
        pattern = rf"^\s*\d+\.{re.escape(self.config.session_name)}\s"
        return re.search(pattern, result.stdout or "", re.MULTILINE) is not None

    def find_process(self) -> Optional[psutil.Process]:
        executable = self.config.server_executable
        try:
            for proc in psutil.process_iter(["name", "username", "cmdline"]):
                info = proc.info
                if info.get("username") != self.config.server_user:
                    continue
                cmdline = info.get("cmdline") or []
                if info.get("name") == executable or (cmdline and Path(cmdline[0]).name == executable):
                    return proc
        except psutil.Error as e:
            log.debug(f"Process probe failed: {e}")
        return None

    def is_running(self) -> bool:
        return self.session_exists() and self.find_process() is not None

    def _is_cleared(self) -> bool:
        return not self.session_exists() and self.find_process() is None

    def get_process_info(self) -> Optional[ProcessInfo]:
        proc = self.find_process()
        if proc is None:
            return None
        try:
            with proc.oneshot():
                return ProcessInfo(
                    pid=proc.pid,
                    cpu_percent=proc.cpu_percent(interval=0.1),
                    memory_mb=round(proc.memory_info().rss / 1024 / 1024, 1),
                    started_at=datetime.fromtimestamp(proc.create_time()),
                )
        except psutil.Error as e:
            log.debug(f"Could not read process statistics: {e}")
            return ProcessInfo(pid=proc.pid)

    # =============================================================================
    # Start
    # =============================================================================

    def start(self) -> bool:
        if self.is_running():
            log.warning("Server is already running!")
            return True

        executable = self.server_dir / self.config.server_executable
        if not self.server_dir.is_dir():
            raise EnvironmentCheckError(
                f"Server directory not found: {self.server_dir}. Run 'bedrock-server update' first to install the server"
            )
        if not executable.is_file():
            raise EnvironmentCheckError(
                f"Server executable not found: {executable}. Run 'bedrock-server update' first to install the server"
            )
        if not executable.stat().st_mode & 0o111:
            raise EnvironmentCheckError(f"Server executable is not executable: {executable}")

        if self.session_exists():
            log.warning("Found a screen session without a server process, removing it")
            self._quit_session()

        log.info("Starting Minecraft Bedrock Server...")
        name = self.config.session_name
        script = "; ".join([
            "echo 'Starting Minecraft Bedrock Server...'",
            f"echo {shlex.quote('Session: ' + name)}",
            f"echo {shlex.quote('Server Directory: ' + str(self.server_dir))}",
            "echo \"Started at: $(date)\"",
            "echo '=========================='",
            f"LD_LIBRARY_PATH=. exec ./{shlex.quote(self.config.server_executable)}",
        ])
        result = self._run(["screen", "-dmS", name, "bash", "-c", script], cwd=str(self.server_dir))
        if result is None or result.returncode != 0:
            log.error("Failed to launch the screen session")
            return False

        self.sleep(self.config.start_settle_seconds)

        if not self.is_running():
            log.error("Failed to start the server. Check the server logs for more information")
            return False

        log.info("Server started successfully!")
        log.info(f"Screen session name: {name}")
        log.info("To attach to the server console: bedrock-server console (detach with Ctrl+A, then D)")
        return True

    # =============================================================================
    # Console
    # =============================================================================

    def send_command(self, command: str) -> bool:
        """Types ``command`` followed by a newline into the server console."""
        if not self.is_running():
            log.error("Server is not running")
            return False
        result = self._run(["screen", "-S", self.config.session_name, "-p", "0", "-X", "stuff", f"{command}\n"])
        if result is None or result.returncode != 0:
            log.error(f"Failed to send command to server: {command}")
            return False
        log.debug(f"Sent command to server: {command}")
        return True

    def attach_console(self) -> bool:
        if not self.is_running():
            log.error("Server is not running")
            return False
        log.info("Connecting to server console...")
        log.info("Press Ctrl+A, then D to detach from the console")
        try:
            result = subprocess.run(self._command_prefix() + ["screen", "-r", self.config.session_name])
        except OSError as e:
            log.error(f"Could not attach to console: {e}")
            return False
        return result.returncode == 0

    @contextmanager
    def saves_held(self):
        """Freezes world saving while the block runs, so files on disk stay consistent."""
        holding = self.is_running()
        if holding:
            log.info("Holding world saves...")
            for command, pause in SAVE_BARRIER[:2]:
                self.send_command(command)
                self.sleep(pause)
        try:
            yield
        finally:
            if holding:
                self.send_command("save resume")
                log.info("World saves resumed")

    # =============================================================================
    # Stop
    # =============================================================================

    def _send_shutdown_warnings(self):
        warnings = self.config.shutdown_warnings
        for index, seconds in enumerate(warnings):
            if not self.is_running():
                return
            log.info(f"Sending shutdown warning to players ({seconds} seconds)...")
            self.send_command(SHUTDOWN_WARNING.format(seconds=seconds))
            next_warning = warnings[index + 1] if index + 1 < len(warnings) else 0
            self.sleep(seconds - next_warning)

    def _save_barrier(self):
        log.info("Saving world data...")
        for command, pause in SAVE_BARRIER:
            self.send_command(command)
            self.sleep(pause)

    def _wait_for_stop(self, max_wait: int) -> bool:
        log.info(f"Waiting for server to stop (max {max_wait} seconds)...")
        for waited in range(1, max_wait + 1):
            if not self.is_running():
                return True
            self.sleep(1)
            if waited % 10 == 0:
                log.info(f"Still waiting... ({waited}/{max_wait} seconds)")
        return not self.is_running()

    def _quit_session(self):
        log.warning("Killing screen session...")
        self._run(["screen", "-S", self.config.session_name, "-X", "quit"])

    def _signal_process(self):
        """SIGTERM the server process, escalating to SIGKILL if it lingers."""
        proc = self.find_process()
        if proc is None:
            return
        try:
            proc.terminate()
            try:
                proc.wait(timeout=SIGNAL_TIMEOUT)
            except psutil.TimeoutExpired:
                log.warning(f"Process {proc.pid} ignored SIGTERM, sending SIGKILL")
                proc.kill()
                proc.wait(timeout=SIGNAL_TIMEOUT)
        except psutil.NoSuchProcess:
            pass
        except psutil.Error as e:
            log.warning(f"Could not signal server process {proc.pid}: {e}")

    def stop(self, warn_players: bool = True) -> bool:
        """
        Gracefully stops the server: player warnings, save barrier, ``stop``.

        Escalates to killing the session (and signalling the process) when the
        server does not exit within ``stop_timeout`` seconds.
        """
        if not self.is_running():
            log.info("Server is not running")
            return True

        log.info("Stopping Minecraft Bedrock Server gracefully...")
        if warn_players:
            self._send_shutdown_warnings()

        if not self.is_running():
            log.info("Server stopped during shutdown countdown")
            return True

        self._save_barrier()
        log.info("Sending stop command to server...")
        self.send_command("stop")

        if self._wait_for_stop(self.config.stop_timeout):
            log.info("Server stopped gracefully")
            return True

        log.warning(f"Server didn't stop gracefully within {self.config.stop_timeout} seconds")
        self._quit_session()
        self.sleep(2)
        if self.find_process() is not None:
            self._signal_process()

        if not self._is_cleared():
            log.error("Failed to stop server")
            return False
        log.warning("Server stopped forcefully")
        return True

    def force_stop(self) -> bool:
        if not self.is_running():
            log.info("Server is not running")
            return True

        log.warning("Force stopping Minecraft Bedrock Server...")
        self._signal_process()
        self._quit_session()
        self.sleep(2)

        if not self._is_cleared():
            log.error("Failed to force stop server")
            return False
        log.info("Server stopped forcefully")
        return True
