import os
import tarfile
from pathlib import Path

import pytest

from bedrock_server_cli.backups import BackupManager
from bedrock_server_cli.errors import InstallError
from bedrock_server_cli.installer import ServerInstaller
from bedrock_server_cli.metadata import read_install_record

URL = "https://minecraft.azureedge.net/bin-linux/bedrock-server-1.21.50.7.zip"
WORLD_BYTES = bytes(range(256)) * 16


@pytest.fixture
def installer(app_config):
    return ServerInstaller(app_config, BackupManager(app_config))


@pytest.fixture
def staging_root(tmp_path: Path) -> Path:
    root = tmp_path / "staging"
    root.mkdir()
    return root


@pytest.fixture
def staged_package(staging_root: Path, write_executable) -> Path:
    staged = staging_root / "extracted"
    write_executable(staged / "bedrock_server", b"new binary")
    (staged / "server.properties").write_text("server-name=Dedicated Server\n")
    (staged / "allowlist.json").write_text("[]")
    (staged / "behavior_packs" / "vanilla").mkdir(parents=True)
    (staged / "behavior_packs" / "vanilla" / "manifest.json").write_text('{"new": true}')
    (staged / "release-notes.txt").write_text("Version 1.21.50.7\n")
    return staged


@pytest.fixture
def existing_install(app_config, write_executable) -> Path:
    server_dir = Path(app_config.server_directory)
    write_executable(server_dir / "bedrock_server", b"old binary")
    (server_dir / "server.properties").write_text("server-name=My Realm\ngamemode=creative\n")
    (server_dir / "permissions.json").write_text('[{"permission": "operator"}]')
    world = server_dir / "worlds" / "Bedrock level" / "db"
    world.mkdir(parents=True)
    (world / "000005.ldb").write_bytes(WORLD_BYTES)
    (server_dir / "libCrypto.so").write_bytes(b"stale library")
    (server_dir / ".installed_version").write_text("VERSION=1.21.44.01\n")
    return server_dir


def test_update_preserves_configuration_and_worlds(installer, existing_install, staged_package, staging_root):
    record, snapshot = installer.install(staged_package, URL, staging_root)

    # Preserved files win over the package defaults
    assert (existing_install / "server.properties").read_text() == "server-name=My Realm\ngamemode=creative\n"
    assert (existing_install / "permissions.json").read_text() == '[{"permission": "operator"}]'
    assert (existing_install / "worlds" / "Bedrock level" / "db" / "000005.ldb").read_bytes() == WORLD_BYTES

    # Package files replace the old install
    assert (existing_install / "bedrock_server").read_bytes() == b"new binary"
    assert os.access(existing_install / "bedrock_server", os.X_OK)
    assert (existing_install / "allowlist.json").read_text() == "[]"
    assert (existing_install / "behavior_packs" / "vanilla" / "manifest.json").exists()
    assert not (existing_install / "libCrypto.so").exists()

    assert record.version == "1.21.50.7"
    assert read_install_record(existing_install / ".installed_version").version == "1.21.50.7"
    assert snapshot is not None and snapshot.exists()


def test_snapshot_contains_previous_install(installer, existing_install, staged_package, staging_root):
    _, snapshot = installer.install(staged_package, URL, staging_root)

    backup_name = snapshot.name[: -len(".tar.gz")]
    with tarfile.open(snapshot, "r:gz") as tar:
        member = tar.extractfile(f"{backup_name}/bedrock_server")
        assert member.read() == b"old binary"


def test_fresh_install_skips_backup(installer, app_config, staged_package, staging_root):
    record, snapshot = installer.install(staged_package, URL, staging_root)

    server_dir = Path(app_config.server_directory)
    assert snapshot is None
    assert (server_dir / "bedrock_server").read_bytes() == b"new binary"
    assert (server_dir / "server.properties").read_text() == "server-name=Dedicated Server\n"
    assert record.version == "1.21.50.7"


def test_package_without_executable_is_refused(installer, existing_install, staging_root):
    staged = staging_root / "extracted"
    staged.mkdir()
    (staged / "server.properties").write_text("x")

    with pytest.raises(InstallError):
        installer.install(staged, URL, staging_root)

    assert (existing_install / "bedrock_server").read_bytes() == b"old binary"
    assert (existing_install / "libCrypto.so").exists()


def test_url_without_version_records_placeholder(installer, staged_package, staging_root):
    record, _ = installer.install(staged_package, "https://example.com/latest.zip", staging_root)

    assert record.version.startswith("unknown-")
    assert record.download_url == "https://example.com/latest.zip"
