"""Tests for HTTP helpers and the Maven artifact fetcher."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from common import http_client
from common.logging_utils import extra_context, safe_url
from errors import ArtifactFetchError, ArtifactNotFoundError
from registry.artifacts import ArtifactCoordinate, MavenArtifactFetcher


def _response(status_code=200, text="", chunks=()):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = {"Content-Type": "application/xml"}
    response.iter_content.return_value = list(chunks)
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


class TestRobustGet:
    """Metadata requests with retries and caching."""

    @patch("common.http_client.requests.get")
    def test_success_is_cached(self, mock_get):
        mock_get.return_value = _response(200, "<metadata/>")

        first = http_client.robust_get("https://repo.example/a/maven-metadata.xml")
        second = http_client.robust_get("https://repo.example/a/maven-metadata.xml")

        assert first == (200, {"Content-Type": "application/xml"}, "<metadata/>")
        assert second == first
        assert mock_get.call_count == 1

    @patch("common.http_client.time.sleep")
    @patch("common.http_client.requests.get")
    def test_retries_then_reports_failure(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.Timeout()

        status, headers, text = http_client.robust_get("https://repo.example/x")

        assert status == 0
        assert headers == {}
        assert "timeout" in text
        assert mock_get.call_count == 3

    @patch("common.http_client.time.sleep")
    @patch("common.http_client.requests.get")
    def test_server_errors_are_not_cached(self, mock_get, mock_sleep):
        mock_get.return_value = _response(503)
        http_client.robust_get("https://repo.example/y")
        http_client.robust_get("https://repo.example/y")
        assert mock_get.call_count == 2


class TestDownloadFile:
    """Streaming artifact downloads."""

    @patch("common.http_client.requests.get")
    def test_download(self, mock_get, tmp_path):
        mock_get.return_value = _response(200, chunks=[b"PK", b"", b"data"])
        target = tmp_path / "a" / "b" / "file.zip"

        result = http_client.download_file("https://repo.example/file.zip", target, context="ide")

        assert result == target
        assert target.read_bytes() == b"PKdata"
        assert not (target.parent / "file.zip.part").exists()

    @patch("common.http_client.requests.get")
    def test_not_found(self, mock_get, tmp_path):
        mock_get.return_value = _response(404)
        with pytest.raises(ArtifactNotFoundError):
            http_client.download_file("https://repo.example/missing.zip", tmp_path / "missing.zip", context="ide")
        assert not (tmp_path / "missing.zip").exists()

    @patch("common.http_client.requests.get")
    def test_server_error(self, mock_get, tmp_path):
        mock_get.return_value = _response(500)
        with pytest.raises(ArtifactFetchError, match="HTTP 500") as exc_info:
            http_client.download_file("https://repo.example/f.zip", tmp_path / "f.zip", context="ide")
        assert not isinstance(exc_info.value, ArtifactNotFoundError)

    @patch("common.http_client.requests.get")
    def test_connection_error(self, mock_get, tmp_path):
        mock_get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ArtifactFetchError, match="connection error"):
            http_client.download_file("https://user:pw@repo.example/f.zip?t=1", tmp_path / "f.zip", context="plugin")


class TestMavenArtifactFetcher:
    """Coordinate layout and cache reuse."""

    def test_coordinate_urls(self):
        coordinate = ArtifactCoordinate("com.jetbrains.intellij.idea", "ideaIC", "2022.2",
                                        "https://repo.example/releases/", extension="jar", classifier="sources")
        assert coordinate.url == (
            "https://repo.example/releases/com/jetbrains/intellij/idea/ideaIC/2022.2/ideaIC-2022.2-sources.jar"
        )
        assert str(coordinate) == "com.jetbrains.intellij.idea:ideaIC:2022.2:sources@jar"

    @patch("registry.artifacts.http_client.download_file")
    def test_cached_file_is_reused(self, mock_download, tmp_path):
        fetcher = MavenArtifactFetcher(tmp_path)
        coordinate = ArtifactCoordinate("org.x", "x", "1.0", "https://repo.example")
        cached = fetcher.local_path(coordinate)
        cached.parent.mkdir(parents=True)
        cached.write_bytes(b"zip")

        assert fetcher.fetch(coordinate) == cached
        mock_download.assert_not_called()

    @patch("registry.artifacts.http_client.download_file")
    def test_download_into_cache(self, mock_download, tmp_path):
        fetcher = MavenArtifactFetcher(tmp_path)
        coordinate = ArtifactCoordinate("org.x", "x", "1.0", "https://repo.example")
        mock_download.side_effect = lambda url, dest, context: dest

        result = fetcher.fetch(coordinate)

        assert result == tmp_path / "artifacts" / "org" / "x" / "x" / "1.0" / "x-1.0.zip"
        mock_download.assert_called_once_with("https://repo.example/org/x/x/1.0/x-1.0.zip", result, context="x")


class TestLoggingHelpers:
    """Log payload helpers."""

    def test_safe_url(self):
        assert safe_url("https://user:pw@repo.example:8443/a/b?token=1#x") == "https://repo.example:8443/a/b"

    def test_extra_context_drops_none(self):
        assert extra_context(event="x", target=None) == {"event": "x"}
