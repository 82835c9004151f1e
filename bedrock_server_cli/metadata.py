"""Reading and writing the install metadata file kept next to the server binary."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .schemas import InstallRecord

log = logging.getLogger(__name__)

METADATA_FILE_NAME = ".installed_version"
INSTALL_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HEADER = (
    "# Minecraft Bedrock Server Version Information\n"
    "# This file is automatically generated by bedrock-server update\n"
)


def read_install_record(path: Path) -> Optional[InstallRecord]:
    """Returns the record in ``path`` or None when it is missing, unreadable or has no VERSION."""
    if not path.is_file():
        return None
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as e:
        log.debug(f"Could not read install metadata {path}: {e}")
        return None

    version = (values.get("VERSION") or "").strip()
    if not version:
        log.debug(f"Install metadata {path} has no VERSION entry")
        return None
    return InstallRecord(
        version=version,
        install_date=values.get("INSTALL_DATE") or None,
        download_url=values.get("DOWNLOAD_URL") or None,
    )


def write_install_record(path: Path, record: InstallRecord) -> None:
    lines = [
        _HEADER,
        f"VERSION={record.version}\n",
        f"INSTALL_DATE={record.install_date or datetime.now().strftime(INSTALL_DATE_FORMAT)}\n",
        f"DOWNLOAD_URL={record.download_url or ''}\n",
    ]
    path.write_text("".join(lines), encoding="utf-8")
    path.chmod(0o644)
