import re
from datetime import datetime
from enum import Enum
from typing import Optional, List, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+\.\d+$")


class NotificationConfig(BaseModel):
    """Telegram notification settings. The bot token lives in the .env file."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    bot_token: str = ""
    chat_ids: List[str] = Field(default_factory=list)
    notify_update_start: bool = True
    notify_update_success: bool = True
    notify_update_failure: bool = True
    notify_no_update: bool = False
    api_base_url: str = "https://api.telegram.org"


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    server_user: str = "mcserver"
    server_directory: str = "/home/mcserver/minecraft-server"
    backup_directory: str = "/home/mcserver/backups"
    temp_directory: str = "/tmp/minecraft-update"
    log_directory: str = "/var/log/minecraft"
    log_file_name: str = "minecraft-server.log"
    world_name: str = "Bedrock level"
    session_name: str = "minecraft-server"
    server_executable: str = "bedrock_server"

    download_url: str = "https://minecraft.azureedge.net/bin-linux/bedrock-server-1.21.44.01.zip"
    api_url: str = "https://net-secondary.web.minecraft-services.net/api/v1.0/download/links"
    download_page_url: str = "https://www.minecraft.net/en-us/download/server/bedrock"
    cdn_url_template: str = "https://minecraft.azureedge.net/bin-linux/bedrock-server-{version}.zip"
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    request_timeout: float = Field(default=15.0, gt=0, le=30)
    request_retries: int = Field(default=2, ge=0)
    validate_timeout: float = Field(default=10.0, gt=0)

    backup_prefix: str = "minecraft-backup"
    backup_retention_days: int = Field(default=30, ge=0)
    preserve_files: List[str] = Field(default_factory=lambda: [
        "server.properties",
        "allowlist.json",
        "permissions.json",
    ])
    preserve_directories: List[str] = Field(default_factory=lambda: [
        "worlds",
        "behavior_packs",
        "resource_packs",
    ])

    stop_timeout: int = Field(default=60, ge=1)
    start_settle_seconds: float = Field(default=3.0, ge=0)
    shutdown_warnings: List[int] = Field(default_factory=lambda: [60, 15, 5])

    notifications: NotificationConfig = Field(default_factory=NotificationConfig)

    @field_validator("shutdown_warnings")
    @classmethod
    def _warnings_descending(cls, value: List[int]) -> List[int]:
        if any(v <= 0 for v in value):
            raise ValueError("shutdown warnings must be positive")
        return sorted(value, reverse=True)

    @property
    def log_file(self) -> str:
        return f"{self.log_directory.rstrip('/')}/{self.log_file_name}"


# =============================================================================
# Versions
# =============================================================================

class VersionState(str, Enum):
    KNOWN = "known"
    NOT_INSTALLED = "not-installed"
    UNRESOLVED = "unknown"


class ServerVersion(BaseModel):
    """
    A version as seen by the resolver.

    Either a concrete version string (which may or may not be a four part
    numeric version, e.g. ``installed-20240101``), or one of the sentinels
    ``not-installed`` and ``unknown``.
    """
    model_config = ConfigDict(frozen=True)

    state: VersionState
    value: Optional[str] = None

    @classmethod
    def known(cls, value: str) -> "ServerVersion":
        return cls(state=VersionState.KNOWN, value=value)

    @classmethod
    def not_installed(cls) -> "ServerVersion":
        return cls(state=VersionState.NOT_INSTALLED)

    @classmethod
    def unresolved(cls) -> "ServerVersion":
        return cls(state=VersionState.UNRESOLVED)

    @property
    def is_known(self) -> bool:
        return self.state == VersionState.KNOWN

    @property
    def numeric_parts(self) -> Optional[Tuple[int, ...]]:
        """Component tuple for four part numeric versions, otherwise None."""
        if not self.is_known or not VERSION_PATTERN.match(self.value or ""):
            return None
        return tuple(int(part) for part in self.value.split("."))

    def __str__(self) -> str:
        if self.is_known:
            return self.value
        return self.state.value


class ReleaseInfo(BaseModel):
    version: ServerVersion
    download_url: Optional[str] = None
    source: Literal["api", "web", "config"]


class UpdateOutcome(str, Enum):
    FRESH_INSTALL = "fresh-install"
    UPDATE_AVAILABLE = "update-available"
    NON_STANDARD_VERSION = "non-standard-version"
    UP_TO_DATE = "up-to-date"
    LATEST_UNKNOWN = "latest-unknown"
    INSTALLED_NEWER = "installed-newer"


UPDATE_OUTCOMES = {
    UpdateOutcome.FRESH_INSTALL,
    UpdateOutcome.UPDATE_AVAILABLE,
    UpdateOutcome.NON_STANDARD_VERSION,
}


class UpdateDecision(BaseModel):
    installed: ServerVersion
    latest: ServerVersion
    outcome: UpdateOutcome
    reason: str

    @property
    def update_needed(self) -> bool:
        return self.outcome in UPDATE_OUTCOMES


# =============================================================================
# Install state
# =============================================================================

class InstallRecord(BaseModel):
    """Contents of the install metadata file."""
    version: str
    install_date: Optional[str] = None
    download_url: Optional[str] = None


class BackupInfo(BaseModel):
    name: str
    path: str
    size_bytes: int
    created_at: datetime


class ProcessInfo(BaseModel):
    pid: int
    cpu_percent: Optional[float] = None
    memory_mb: Optional[float] = None
    started_at: Optional[datetime] = None


class InstallationStatus(BaseModel):
    directory: str
    exists: bool
    executable_found: bool = False
    executable_is_executable: bool = False
    world_count: Optional[int] = None
    world_name: Optional[str] = None
    world_found: bool = False
    preserved_files: dict[str, bool] = Field(default_factory=dict)
    disk_usage_bytes: Optional[int] = None
    record: Optional[InstallRecord] = None


class BackupStatus(BaseModel):
    directory: str
    exists: bool
    backups: List[BackupInfo] = Field(default_factory=list)
    disk_usage_bytes: Optional[int] = None


class LogStatus(BaseModel):
    path: str
    exists: bool
    size_bytes: Optional[int] = None
    line_count: Optional[int] = None
    recent_lines: List[str] = Field(default_factory=list)


class ServerStatus(BaseModel):
    is_running: bool
    session_name: str
    session_exists: bool = False
    process: Optional[ProcessInfo] = None
    installed_version: ServerVersion
    installation: InstallationStatus
    backups: BackupStatus
    log: LogStatus


# =============================================================================
# Environment checks
# =============================================================================

class EnvironmentCheck(BaseModel):
    name: str
    passed: bool
    details: Optional[str] = None
    suggestion: Optional[str] = None


class CheckReport(BaseModel):
    checks: List[EnvironmentCheck]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)
