import os
import pwd
import logging
from pathlib import Path

log = logging.getLogger(__name__)


def current_user() -> str:
    return pwd.getpwuid(os.geteuid()).pw_name


def is_root() -> bool:
    return os.geteuid() == 0


def user_exists(user: str) -> bool:
    try:
        pwd.getpwnam(user)
        return True
    except KeyError:
        return False


def chown_path(path: Path, user: str, recursive: bool = False) -> None:
    """Hands ``path`` to ``user`` (and its primary group). Only root can do this; otherwise a no-op."""
    if not is_root():
        log.debug(f"Not running as root, leaving ownership of {path} unchanged")
        return
    try:
        entry = pwd.getpwnam(user)
    except KeyError:
        log.warning(f"Service account '{user}' does not exist, ownership of {path} unchanged")
        return

    targets = [path]
    if recursive and path.is_dir():
        targets.extend(path.rglob("*"))
    for target in targets:
        try:
            os.chown(target, entry.pw_uid, entry.pw_gid, follow_symlinks=False)
        except OSError as e:
            log.warning(f"Could not change ownership of {target}: {e}")


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | 0o111)
