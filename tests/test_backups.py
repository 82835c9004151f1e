import os
import time
import tarfile
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from bedrock_server_cli.backups import BackupManager
from bedrock_server_cli.errors import BackupError


def make_archive(backup_dir: Path, name: str, age_days: float) -> Path:
    backup_dir.mkdir(parents=True, exist_ok=True)
    path = backup_dir / name
    path.write_bytes(b"archive")
    stamp = time.time() - age_days * 86400
    os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def populated_server(app_config):
    server_dir = Path(app_config.server_directory)
    (server_dir / "worlds" / "Bedrock level").mkdir(parents=True)
    (server_dir / "worlds" / "Bedrock level" / "level.dat").write_bytes(b"\x00\x01world")
    (server_dir / "server.properties").write_text("server-name=Test\n")
    return server_dir


class TestCreateBackup:

    def test_creates_compressed_snapshot(self, app_config, populated_server):
        manager = BackupManager(app_config)

        archive = manager.create_backup(populated_server)

        assert archive.parent == Path(app_config.backup_directory)
        assert archive.name.startswith("minecraft-backup-")
        assert archive.name.endswith(".tar.gz")
        backup_name = archive.name[: -len(".tar.gz")]
        with tarfile.open(archive, "r:gz") as tar:
            names = tar.getnames()
        assert f"{backup_name}/server.properties" in names
        assert f"{backup_name}/worlds/Bedrock level/level.dat" in names
        # The uncompressed copy is removed
        assert not (Path(app_config.backup_directory) / backup_name).exists()

    def test_missing_directory_is_skipped(self, app_config):
        manager = BackupManager(app_config)
        assert manager.create_backup(Path(app_config.server_directory)) is None
        assert manager.list_backups() == []

    def test_empty_directory_is_skipped(self, app_config):
        server_dir = Path(app_config.server_directory)
        server_dir.mkdir()
        assert BackupManager(app_config).create_backup(server_dir) is None

    def test_same_second_backups_get_distinct_names(self, app_config, populated_server):
        manager = BackupManager(app_config)
        with patch("bedrock_server_cli.backups.datetime") as mock_datetime:
            mock_datetime.now.return_value = datetime(2024, 12, 3, 10, 15, 0)
            first = manager.create_backup(populated_server)
            second = manager.create_backup(populated_server)

        assert first.name == "minecraft-backup-20241203-101500.tar.gz"
        assert second.name == "minecraft-backup-20241203-101500-1.tar.gz"
        assert first.is_file() and second.is_file()

    def test_failed_backup_keeps_earlier_archive_from_same_second(self, app_config, populated_server):
        manager = BackupManager(app_config)
        with patch("bedrock_server_cli.backups.datetime") as mock_datetime:
            mock_datetime.now.return_value = datetime(2024, 12, 3, 10, 15, 0)
            first = manager.create_backup(populated_server)
            with patch("bedrock_server_cli.backups.shutil.copytree", side_effect=OSError("disk full")):
                with pytest.raises(BackupError):
                    manager.create_backup(populated_server)

        assert first.is_file()
        assert [b.name for b in manager.list_backups()] == [first.name]


class TestPruneBackups:

    def test_removes_archives_older_than_retention(self, app_config):
        backup_dir = Path(app_config.backup_directory)
        old = make_archive(backup_dir, "minecraft-backup-20240101-000000.tar.gz", age_days=45)
        recent = make_archive(backup_dir, "minecraft-backup-20240301-000000.tar.gz", age_days=3)
        unrelated = make_archive(backup_dir, "notes.tar.gz", age_days=90)

        removed = BackupManager(app_config).prune_backups(retention_days=30)

        assert removed == [old]
        assert not old.exists()
        assert recent.exists()
        assert unrelated.exists()

    def test_zero_retention_keeps_only_the_new_snapshot(self, app_config):
        backup_dir = Path(app_config.backup_directory)
        older = make_archive(backup_dir, "minecraft-backup-20240101-000000.tar.gz", age_days=1)
        newest = make_archive(backup_dir, "minecraft-backup-20240102-000000.tar.gz", age_days=0)

        BackupManager(app_config).prune_backups(retention_days=0, keep=[newest])

        assert not older.exists()
        assert newest.exists()

    def test_uses_configured_retention_by_default(self, app_config):
        config = app_config.model_copy(update={"backup_retention_days": 7})
        backup_dir = Path(config.backup_directory)
        week_old = make_archive(backup_dir, "minecraft-backup-20240101-000000.tar.gz", age_days=8)

        BackupManager(config).prune_backups()

        assert not week_old.exists()


def test_list_backups_newest_first(app_config):
    backup_dir = Path(app_config.backup_directory)
    make_archive(backup_dir, "minecraft-backup-a.tar.gz", age_days=5)
    make_archive(backup_dir, "minecraft-backup-b.tar.gz", age_days=1)

    manager = BackupManager(app_config)
    backups = manager.list_backups()

    assert [b.name for b in backups] == ["minecraft-backup-b.tar.gz", "minecraft-backup-a.tar.gz"]
    assert manager.disk_usage() == 2 * len(b"archive")
