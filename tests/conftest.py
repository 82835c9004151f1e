import os
import zipfile
from pathlib import Path

import pytest
from unittest.mock import MagicMock

from bedrock_server_cli.schemas import AppConfig, CheckReport, EnvironmentCheck


@pytest.fixture
def mock_display():
    """Fixture for a mocked Display object."""
    return MagicMock()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """An AppConfig whose directories all live under the test's tmp_path."""
    return AppConfig(
        server_directory=str(tmp_path / "server"),
        backup_directory=str(tmp_path / "backups"),
        temp_directory=str(tmp_path / "staging"),
        log_directory=str(tmp_path / "logs"),
    )


@pytest.fixture
def mock_app_context():
    """Fixture to mock the AppContext and its components."""
    mock_context = MagicMock()
    mock_context.server_manager = MagicMock()
    mock_context.display = MagicMock()
    mock_context.config = MagicMock()
    mock_context.config.fell_back_to_defaults = False
    return mock_context


@pytest.fixture
def mock_check_report():
    return CheckReport(checks=[
        EnvironmentCheck(name="'screen' is installed", passed=True),
        EnvironmentCheck(name="Server directory exists", passed=True),
    ])


@pytest.fixture
def write_executable():
    """Returns a helper that writes an executable file, creating parent directories."""
    def _write(path: Path, content: bytes = b"#!/bin/sh\n"):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        os.chmod(path, 0o755)
        return path
    return _write


@pytest.fixture
def write_server_zip():
    """Returns a helper that builds a server package archive from a name -> bytes mapping."""
    def _write(path: Path, files: dict):
        with zipfile.ZipFile(path, "w") as package:
            for name, content in files.items():
                package.writestr(name, content)
        return path
    return _write
