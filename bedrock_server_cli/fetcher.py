import shutil
import logging
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import httpx

from .display import Display
from .errors import DownloadError, ExtractionError
from .schemas import AppConfig

log = logging.getLogger(__name__)

ARCHIVE_FILE_NAME = "bedrock-server-latest.zip"
EXTRACT_DIR_NAME = "extracted"


@contextmanager
def staging_area(temp_dir: Path) -> Iterator[Path]:
    """
    Provides a scratch directory for one update run.

    The directory is removed exactly once when the block exits, whether it
    completed or raised.
    """
    temp_dir.mkdir(parents=True, exist_ok=True)
    log.debug(f"Using staging directory: {temp_dir}")
    try:
        yield temp_dir
    finally:
        log.info("Cleaning up temporary files...")
        shutil.rmtree(temp_dir, ignore_errors=True)


class PackageFetcher:
    """Downloads and stages server packages."""

    def __init__(self, config: AppConfig, display: Display, client: Optional[httpx.Client] = None):
        self.config = config
        self.display = display
        self.client = client or httpx.Client(
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
        )

    def validate(self, url: str) -> bool:
        """Checks that ``url`` is reachable without downloading it."""
        log.debug(f"Validating download URL: {url}")
        try:
            response = self.client.head(url, timeout=self.config.validate_timeout)
            if response.status_code == 405:
                # Some CDNs refuse HEAD, open the body stream and drop it instead
                with self.client.stream("GET", url, timeout=self.config.validate_timeout) as streamed:
                    return streamed.status_code < 400
            return response.status_code < 400
        except httpx.HTTPError as e:
            log.debug(f"Validation request failed: {e}")
            return False

    def download(self, url: str, staging_dir: Path) -> Path:
        """Downloads ``url`` into the staging directory and returns the archive path."""
        archive = staging_dir / ARCHIVE_FILE_NAME
        log.info(f"Downloading Minecraft Bedrock Server from: {url}")
        try:
            with self.client.stream("GET", url, timeout=self.config.request_timeout) as response:
                response.raise_for_status()
                total = int(response.headers.get("Content-Length", 0)) or None
                with self.display.progress() as progress, open(archive, "wb") as f:
                    task = progress.add_task("Downloading server", total=total)
                    for chunk in response.iter_bytes():
                        f.write(chunk)
                        progress.update(task, advance=len(chunk))
        except (httpx.HTTPError, OSError) as e:
            archive.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download server from {url}: {e}") from e

        log.info("Download completed successfully")
        return archive

    def extract(self, archive: Path, staging_dir: Path) -> Path:
        """Unpacks the whole archive into an isolated directory and returns it."""
        extract_dir = staging_dir / EXTRACT_DIR_NAME
        log.info("Extracting server files...")
        try:
            extract_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive) as package:
                package.extractall(extract_dir)
        except (zipfile.BadZipFile, OSError) as e:
            raise ExtractionError(f"Failed to extract server files from {archive}: {e}") from e

        log.info("Server files extracted successfully")
        return extract_dir
