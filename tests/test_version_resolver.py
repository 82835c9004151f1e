import os
import time
from pathlib import Path

import httpx
import pytest

from bedrock_server_cli.schemas import AppConfig, VersionState
from bedrock_server_cli.version_resolver import VersionResolver, version_from_url

API_URL = AppConfig().api_url
PAGE_URL = AppConfig().download_page_url
LINUX_URL = "https://www.minecraft.net/bedrockdedicatedserver/bin-linux/bedrock-server-1.21.50.7.zip"


def make_client(routes: dict, calls: list = None) -> httpx.Client:
    """An httpx client answering from ``routes`` (url -> Response or exception)."""
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        answer = routes.get(url)
        if answer is None:
            return httpx.Response(404)
        if isinstance(answer, Exception):
            raise answer
        return answer
    return httpx.Client(transport=httpx.MockTransport(handler))


def api_response(links) -> httpx.Response:
    return httpx.Response(200, json={"result": {"links": links}})


class TestVersionFromUrl:

    def test_extracts_four_part_version(self):
        version = version_from_url(LINUX_URL)
        assert version.is_known
        assert str(version) == "1.21.50.7"

    def test_url_without_version_is_unresolved(self):
        assert version_from_url("https://example.com/server.zip").state == VersionState.UNRESOLVED
        assert version_from_url(None).state == VersionState.UNRESOLVED


class TestLatestVersion:

    def test_api_linux_entry_is_used(self, app_config):
        client = make_client({API_URL: api_response([
            {"downloadType": "serverBedrockWindows", "downloadUrl": "https://x/bedrock-server-1.21.50.7-win.zip"},
            {"downloadType": "serverBedrockLinux", "downloadUrl": LINUX_URL},
        ])})
        release = VersionResolver(app_config, client).resolve_latest()

        assert release.source == "api"
        assert str(release.version) == "1.21.50.7"
        assert release.download_url == LINUX_URL

    def test_wrong_download_type_falls_through_to_download_page(self, app_config):
        client = make_client({
            API_URL: api_response([
                {"downloadType": "serverBedrockWindows", "downloadUrl": "https://x/bedrock-server-1.21.50.7.zip"},
            ]),
            PAGE_URL: httpx.Response(200, text=(
                '<a href="https://www.minecraft.net/bin-linux/bedrock-server-1.21.51.2.zip">Download</a>'
                '<a href="https://www.minecraft.net/bin-win/bedrock-server-1.21.51.1.zip">Windows</a>'
            )),
        })
        release = VersionResolver(app_config, client).resolve_latest()

        assert release.source == "web"
        assert str(release.version) == "1.21.51.2"
        assert release.download_url == "https://minecraft.azureedge.net/bin-linux/bedrock-server-1.21.51.2.zip"

    @pytest.mark.parametrize("bad_url", ["", "null", "ftp://example.com/bedrock-server-1.21.50.7.zip"])
    def test_unusable_api_url_is_rejected(self, app_config, bad_url):
        client = make_client({
            API_URL: api_response([{"downloadType": "serverBedrockLinux", "downloadUrl": bad_url}]),
            PAGE_URL: httpx.Response(200, text="bedrock-server-1.21.51.2.zip"),
        })
        assert VersionResolver(app_config, client).resolve_latest().source == "web"

    def test_malformed_json_falls_through(self, app_config):
        client = make_client({
            API_URL: httpx.Response(200, text="<html>maintenance</html>"),
            PAGE_URL: httpx.Response(200, text="bedrock-server-1.21.51.2.zip"),
        })
        assert VersionResolver(app_config, client).resolve_latest().source == "web"

    def test_all_remote_sources_fail_uses_configured_url(self, app_config):
        client = make_client({
            API_URL: httpx.ConnectTimeout("timed out"),
            PAGE_URL: httpx.Response(503),
        })
        release = VersionResolver(app_config, client).resolve_latest()

        assert release.source == "config"
        assert str(release.version) == "1.21.44.01"
        assert release.download_url == app_config.download_url

    def test_configured_url_without_version_is_unknown(self, app_config):
        config = app_config.model_copy(update={"download_url": "https://example.com/latest.zip"})
        client = make_client({})
        release = VersionResolver(config, client).resolve_latest()

        assert release.version.state == VersionState.UNRESOLVED
        assert release.download_url == "https://example.com/latest.zip"

    def test_empty_configured_url_has_no_download_url(self, app_config):
        config = app_config.model_copy(update={"download_url": ""})
        release = VersionResolver(config, make_client({})).resolve_latest()
        assert release.download_url is None
        assert str(release.version) == "unknown"

    def test_requests_are_retried(self, app_config):
        calls = []
        config = app_config.model_copy(update={"request_retries": 2})
        client = make_client({API_URL: httpx.ConnectError("refused")}, calls)

        VersionResolver(config, client).resolve_latest()

        assert calls.count(API_URL) == 3
        assert calls.count(PAGE_URL) == 3


class TestInstalledVersion:

    def test_missing_executable_is_not_installed(self, app_config):
        version = VersionResolver(app_config, make_client({})).get_installed_version()
        assert version.state == VersionState.NOT_INSTALLED

    def test_metadata_file_wins(self, app_config, write_executable):
        server_dir = Path(app_config.server_directory)
        write_executable(server_dir / "bedrock_server")
        (server_dir / ".installed_version").write_text("VERSION=1.21.50.7\n")
        (server_dir / "release-notes.txt").write_text("Version 1.20.0.1\n")

        version = VersionResolver(app_config, make_client({})).get_installed_version()
        assert str(version) == "1.21.50.7"

    def test_release_notes_fallback(self, app_config, write_executable):
        server_dir = Path(app_config.server_directory)
        write_executable(server_dir / "bedrock_server")
        (server_dir / "release-notes.txt").write_text("Release notes\nVersion 1.20.81.01\n")

        version = VersionResolver(app_config, make_client({})).get_installed_version()
        assert str(version) == "1.20.81.01"

    def test_executable_timestamp_fallback(self, app_config, write_executable):
        executable = write_executable(Path(app_config.server_directory) / "bedrock_server")
        stamp = time.mktime((2024, 1, 15, 12, 0, 0, 0, 0, -1))
        os.utime(executable, (stamp, stamp))

        version = VersionResolver(app_config, make_client({})).get_installed_version()
        assert str(version) == "installed-20240115"
        assert version.numeric_parts is None
