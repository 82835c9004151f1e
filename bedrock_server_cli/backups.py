import os
import time
import shutil
import tarfile
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import BackupError
from .schemas import AppConfig, BackupInfo
from .permissions import chown_path

log = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class BackupManager:
    """Creates, lists and prunes timestamped archives of the server directory."""

    def __init__(self, config: AppConfig):
        self.config = config

    @property
    def backup_dir(self) -> Path:
        return Path(self.config.backup_directory)

    def _archives(self) -> List[Path]:
        if not self.backup_dir.is_dir():
            return []
        return [p for p in self.backup_dir.glob(f"{self.config.backup_prefix}-*.tar.gz") if p.is_file()]

    def _unused_backup_name(self) -> str:
        """Timestamped name, suffixed when an earlier backup in the same second already holds it."""
        base = f"{self.config.backup_prefix}-{datetime.now():%Y%m%d-%H%M%S}"
        name, counter = base, 0
        while (self.backup_dir / name).exists() or (self.backup_dir / f"{name}.tar.gz").exists():
            counter += 1
            name = f"{base}-{counter}"
        return name

    def create_backup(self, source_dir: Path) -> Optional[Path]:
        """
        Snapshots ``source_dir`` into ``<prefix>-YYYYMMDD-HHMMSS.tar.gz``.

        The directory is first copied (permissions and timestamps kept), the
        copy is compressed and then removed. Returns None when there is
        nothing to back up.
        """
        if not source_dir.is_dir() or not any(source_dir.iterdir()):
            log.info("No existing server directory found, skipping backup")
            return None

        backup_name = self._unused_backup_name()
        copy_path = self.backup_dir / backup_name
        archive_path = self.backup_dir / f"{backup_name}.tar.gz"

        log.info(f"Creating backup: {backup_name}")
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source_dir, copy_path, symlinks=True)

            log.info("Compressing backup...")
            with tarfile.open(archive_path, "w:gz") as tar:
                tar.add(copy_path, arcname=backup_name)
        except (OSError, shutil.Error, tarfile.TarError) as e:
            archive_path.unlink(missing_ok=True)
            raise BackupError(f"Failed to create backup {backup_name}: {e}") from e
        finally:
            shutil.rmtree(copy_path, ignore_errors=True)

        chown_path(archive_path, self.config.server_user)
        log.info(f"Backup created successfully: {archive_path.name}")
        return archive_path

    def list_backups(self) -> List[BackupInfo]:
        """Backups sorted newest first."""
        backups = []
        for path in self._archives():
            stat = path.stat()
            backups.append(BackupInfo(
                name=path.name,
                path=str(path),
                size_bytes=stat.st_size,
                created_at=datetime.fromtimestamp(stat.st_mtime),
            ))
        return sorted(backups, key=lambda b: b.created_at, reverse=True)

    def prune_backups(self, retention_days: Optional[int] = None, keep: Iterable[Path] = ()) -> List[Path]:
        """
        Deletes archives whose modification time is older than the retention window.

        A retention of 0 days removes every archive except those in ``keep``.
        """
        if retention_days is None:
            retention_days = self.config.backup_retention_days
        log.info(f"Cleaning up old backups (older than {retention_days} days)...")

        keep = {Path(p).resolve() for p in keep}
        window = retention_days * SECONDS_PER_DAY
        now = time.time()
        removed = []
        for path in self._archives():
            if path.resolve() in keep:
                continue
            age = now - path.stat().st_mtime
            if retention_days == 0 or age > window:
                try:
                    path.unlink()
                    removed.append(path)
                    log.debug(f"Removed old backup: {path.name}")
                except OSError as e:
                    log.warning(f"Failed to remove backup {path.name}: {e}")

        log.info(f"Old backups cleaned up ({len(removed)} removed)")
        return removed

    def disk_usage(self) -> Optional[int]:
        if not self.backup_dir.is_dir():
            return None
        return sum(os.path.getsize(p) for p in self._archives())
