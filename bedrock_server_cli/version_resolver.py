import re
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from .metadata import METADATA_FILE_NAME, read_install_record
from .schemas import AppConfig, ServerVersion, ReleaseInfo

log = logging.getLogger(__name__)

LINUX_DOWNLOAD_TYPE = "serverBedrockLinux"
RELEASE_NOTES_FILE_NAME = "release-notes.txt"

URL_VERSION_PATTERN = re.compile(r"bedrock-server-(\d+\.\d+\.\d+\.\d+)")
RELEASE_NOTES_PATTERN = re.compile(r"Version\s+(\d+\.\d+\.\d+\.\d+)")
HTTP_URL_PATTERN = re.compile(r"^https?://")


def version_from_url(url: Optional[str]) -> ServerVersion:
    """Extracts the version embedded in a ``bedrock-server-X.Y.Z.W`` download URL."""
    match = URL_VERSION_PATTERN.search(url or "")
    if not match:
        return ServerVersion.unresolved()
    return ServerVersion.known(match.group(1))


class VersionResolver:
    """
    Determines the installed server version and the latest available release.

    Latest-release detection degrades through three sources, stopping at the
    first usable one:

    1. the JSON download-links API (entry whose downloadType is the Linux server)
    2. the HTML download page, scraped for the first versioned archive name
    3. the statically configured fallback download URL
    """

    def __init__(self, config: AppConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.client = client or httpx.Client(
            headers={"User-Agent": config.user_agent},
            timeout=config.request_timeout,
            follow_redirects=True,
        )

    @property
    def server_dir(self) -> Path:
        return Path(self.config.server_directory)

    # =============================================================================
    # Installed version
    # =============================================================================

    def get_installed_version(self) -> ServerVersion:
        executable = self.server_dir / self.config.server_executable
        if not executable.is_file():
            return ServerVersion.not_installed()

        record = read_install_record(self.server_dir / METADATA_FILE_NAME)
        if record:
            return ServerVersion.known(record.version)

        # Legacy installs only have the release notes shipped with the server
        notes = self.server_dir / RELEASE_NOTES_FILE_NAME
        if notes.is_file():
            try:
                match = RELEASE_NOTES_PATTERN.search(notes.read_text(encoding="utf-8", errors="replace"))
            except OSError as e:
                log.debug(f"Could not read {notes}: {e}")
                match = None
            if match:
                return ServerVersion.known(match.group(1))

        try:
            mtime = executable.stat().st_mtime
        except OSError:
            return ServerVersion.unresolved()
        return ServerVersion.known(f"installed-{datetime.fromtimestamp(mtime):%Y%m%d}")

    # =============================================================================
    # Latest release
    # =============================================================================

    def _fetch(self, url: str) -> Optional[httpx.Response]:
        """GET with the configured retry budget. Returns None once all attempts fail."""
        attempts = 1 + self.config.request_retries
        for attempt in range(1, attempts + 1):
            try:
                response = self.client.get(url, timeout=self.config.request_timeout)
                response.raise_for_status()
                return response
            except httpx.HTTPError as e:
                log.debug(f"Request to {url} failed (attempt {attempt}/{attempts}): {e}")
        return None

    def _release_from_api(self) -> Optional[ReleaseInfo]:
        log.debug("Fetching download links from official Minecraft API...")
        response = self._fetch(self.config.api_url)
        if response is None:
            log.warning("Failed to fetch from official Minecraft API (timeout or connection error)")
            return None

        try:
            links = response.json()["result"]["links"]
            download_url = next(
                (link.get("downloadUrl") for link in links if link.get("downloadType") == LINUX_DOWNLOAD_TYPE),
                None,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            log.debug(f"Malformed API response: {e}")
            return None

        download_url = str(download_url or "").strip()
        if not download_url or download_url == "null" or not HTTP_URL_PATTERN.match(download_url):
            log.debug(f"Invalid or empty download URL from API: '{download_url}'")
            return None

        version = version_from_url(download_url)
        log.info(f"Found latest version using API: {version}")
        return ReleaseInfo(version=version, download_url=download_url, source="api")

    def _release_from_download_page(self) -> Optional[ReleaseInfo]:
        log.debug("Falling back to download page scraping...")
        response = self._fetch(self.config.download_page_url)
        if response is None:
            log.warning("Failed to fetch version from official website (timeout or connection error)")
            return None

        match = URL_VERSION_PATTERN.search(response.text)
        if not match:
            log.debug("No version found in website content")
            return None

        version = match.group(1)
        log.info(f"Found latest version from website: {version}")
        return ReleaseInfo(
            version=ServerVersion.known(version),
            download_url=self.config.cdn_url_template.format(version=version),
            source="web",
        )

    def _release_from_config(self) -> ReleaseInfo:
        log.warning("Could not automatically detect latest version, using configured download URL")
        download_url = self.config.download_url or None
        version = version_from_url(download_url)
        if version.is_known:
            log.info(f"Using version from configuration: {version}")
        return ReleaseInfo(version=version, download_url=download_url, source="config")

    def resolve_latest(self) -> ReleaseInfo:
        log.info("Checking for latest Minecraft Bedrock server version...")
        return (
            self._release_from_api()
            or self._release_from_download_page()
            or self._release_from_config()
        )
