import io
import zipfile

import pytest
import requests

from src.local.external import server_jar
from src.local.external.server_jar import ServerJarManager


def _jar_bytes(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as jar:
        for i in range(entries):
            jar.writestr(f"net/minecraft/Class{i}.class", b"\xca\xfe\xba\xbe")
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status
        self.headers = {"content-length": str(len(body))}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Error")

    def iter_content(self, chunk_size):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]


@pytest.fixture
def manager(options, tmp_path):
    return ServerJarManager(options, target_dir=tmp_path / "bin", url="http://example.invalid/server.jar")


def test_existing_valid_jar_is_not_downloaded(manager, monkeypatch):
    manager.target_dir.mkdir()
    manager.jar_path.write_bytes(_jar_bytes(250))
    monkeypatch.setattr(server_jar.requests, "get", lambda *a, **kw: pytest.fail("unexpected download"))

    assert manager.prepare_server_jar()


def test_small_archive_is_not_a_valid_jar(manager, tmp_path):
    path = tmp_path / "tiny.jar"
    path.write_bytes(_jar_bytes(3))
    assert not manager.verify_jar(path)
    assert not manager.verify_jar(tmp_path / "missing.jar")


def test_missing_jar_is_downloaded(manager, monkeypatch):
    body = _jar_bytes(250)
    requested = []

    def fake_get(url, **kwargs):
        requested.append(url)
        return FakeResponse(body)

    monkeypatch.setattr(server_jar.requests, "get", fake_get)

    assert manager.prepare_server_jar()
    assert requested == ["http://example.invalid/server.jar"]
    assert manager.jar_path.read_bytes() == body
    assert not manager.jar_path.with_suffix(".part").exists()


def test_corrupt_download_is_discarded(manager, monkeypatch):
    monkeypatch.setattr(server_jar.requests, "get", lambda url, **kw: FakeResponse(b"<html>not a jar</html>"))

    assert not manager.prepare_server_jar()
    assert not manager.jar_path.exists()
    assert not manager.jar_path.with_suffix(".part").exists()


def test_network_errors_are_reported(manager, monkeypatch):
    def fail(url, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(server_jar.requests, "get", fail)
    assert not manager.prepare_server_jar()


def test_http_errors_are_reported(manager, monkeypatch):
    monkeypatch.setattr(server_jar.requests, "get", lambda url, **kw: FakeResponse(b"", status=404))
    assert not manager.prepare_server_jar()


def test_alternate_jar_skips_the_download(manager, options, monkeypatch):
    options.set("alternateJarFile", "/srv/custom/server.jar")
    monkeypatch.setattr(server_jar.requests, "get", lambda *a, **kw: pytest.fail("unexpected download"))

    assert manager.prepare_server_jar()
