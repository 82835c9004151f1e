import shutil
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .backups import BackupManager
from .errors import InstallError
from .metadata import METADATA_FILE_NAME, INSTALL_DATE_FORMAT, write_install_record
from .permissions import chown_path, make_executable
from .schemas import AppConfig, InstallRecord
from .version_resolver import version_from_url

log = logging.getLogger(__name__)

PRESERVE_DIR_NAME = "preserve"


class ServerInstaller:
    """
    Replaces the installed server files with a staged package.

    The transaction is not atomic, but its fixed ordering (snapshot, preserve,
    purge, replace, restore) guarantees that configuration and world data
    present before the run are present afterwards, and win over any default
    file of the same name shipped in the package.
    """

    def __init__(self, config: AppConfig, backup_manager: BackupManager):
        self.config = config
        self.backup_manager = backup_manager

    @property
    def server_dir(self) -> Path:
        return Path(self.config.server_directory)

    def install(self, staged_dir: Path, download_url: Optional[str], staging_root: Path) -> tuple[InstallRecord, Optional[Path]]:
        """
        Runs the install transaction. The server must already be stopped.

        Returns the written install record and the snapshot archive, if one was taken.
        """
        if not (staged_dir / self.config.server_executable).is_file():
            raise InstallError(
                f"Staged package does not contain {self.config.server_executable}, refusing to replace the installation"
            )

        backup = self.backup_manager.create_backup(self.server_dir)

        log.info("Installing new server files...")
        try:
            preserve_dir = self.preserve_files(staging_root / PRESERVE_DIR_NAME)
            self.purge_server_dir()
            shutil.copytree(staged_dir, self.server_dir, dirs_exist_ok=True)
            if any(preserve_dir.iterdir()):
                shutil.copytree(preserve_dir, self.server_dir, dirs_exist_ok=True)
                log.info("Restored preserved files and world data")
        except (OSError, shutil.Error) as e:
            raise InstallError(f"Failed to install server files: {e}") from e

        record = self.store_version_info(download_url)
        self.fix_permissions()
        log.info("New server installed successfully")
        return record, backup

    def preserve_files(self, preserve_dir: Path) -> Path:
        """Copies configured files and world directories aside, keeping their relative paths."""
        log.info("Preserving configuration files and world data...")
        preserve_dir.mkdir(parents=True, exist_ok=True)

        for name in self.config.preserve_files:
            source = self.server_dir / name
            if source.is_file():
                target = preserve_dir / name
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
                log.debug(f"Preserved: {name}")

        for name in self.config.preserve_directories:
            source = self.server_dir / name
            if source.is_dir():
                shutil.copytree(source, preserve_dir / name, symlinks=True, dirs_exist_ok=True)
                log.debug(f"Preserved: {name}")

        return preserve_dir

    def purge_server_dir(self):
        """Empties the server directory, keeping the directory itself."""
        self.server_dir.mkdir(parents=True, exist_ok=True)
        for child in self.server_dir.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()

    def store_version_info(self, download_url: Optional[str]) -> InstallRecord:
        now = datetime.now()
        version = version_from_url(download_url)
        record = InstallRecord(
            version=str(version) if version.is_known else f"unknown-{now:%Y%m%d-%H%M%S}",
            install_date=now.strftime(INSTALL_DATE_FORMAT),
            download_url=download_url,
        )
        try:
            write_install_record(self.server_dir / METADATA_FILE_NAME, record)
        except OSError as e:
            raise InstallError(f"Failed to write install metadata: {e}") from e
        log.info(f"Stored version information: {record.version}")
        return record

    def fix_permissions(self):
        executable = self.server_dir / self.config.server_executable
        try:
            make_executable(executable)
        except OSError as e:
            raise InstallError(f"Could not mark {executable} executable: {e}") from e
        chown_path(self.server_dir, self.config.server_user, recursive=True)
