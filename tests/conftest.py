"""Shared fixtures: fake artifact fetcher and on-disk IDE/plugin builders."""

import zipfile
from pathlib import Path

import pytest

from common import http_client
from errors import ArtifactNotFoundError
from registry.artifacts import ArtifactFetcher


def plugin_xml(plugin_id, since=None, until=None, version="1.0", depends=()):
    """Render a minimal plugin.xml."""
    range_attrs = ""
    if since:
        range_attrs += f' since-build="{since}"'
    if until:
        range_attrs += f' until-build="{until}"'
    depends_xml = "".join(f"<depends>{d}</depends>" for d in depends)
    return (
        f"<idea-plugin><id>{plugin_id}</id><name>{plugin_id}</name>"
        f"<version>{version}</version><idea-version{range_attrs}/>{depends_xml}</idea-plugin>"
    )


def write_jar(path, entries=None):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in (entries or {"META-INF/MANIFEST.MF": "Manifest-Version: 1.0\n"}).items():
            zf.writestr(name, data)
    return path


def write_zip(path, files):
    """Write a zip whose entries are ``{relative name: bytes or str}``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return path


def _jar_bytes(tmp_dir, name, entries=None):
    return write_jar(Path(tmp_dir) / "_jars" / name, entries).read_bytes()


class FakeFetcher(ArtifactFetcher):
    """Serves registered files by (artifact, extension, classifier) and records every call."""

    def __init__(self):
        self.artifacts = {}
        self.calls = []

    def add(self, artifact, path, extension="zip", classifier=None):
        self.artifacts[(artifact, extension, classifier)] = Path(path)

    def fetch(self, coordinate):
        self.calls.append(coordinate)
        key = (coordinate.artifact, coordinate.extension, coordinate.classifier)
        if key not in self.artifacts:
            raise ArtifactNotFoundError(coordinate.url, "not found")
        return self.artifacts[key]


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture(autouse=True)
def _clear_http_cache():
    http_client.clear_cache()
    yield
    http_client.clear_cache()


@pytest.fixture
def make_ide(tmp_path):
    """Create an unpacked IDE installation with ``lib`` jars and bundled plugins."""

    def _make(root=None, build="IC-222.4345.14", jars=("a.jar", "b.jar"), plugins=None, bundle=False):
        root = Path(root) if root is not None else tmp_path / "ide"
        classes_root = root / "Contents" if bundle else root
        classes_root.mkdir(parents=True, exist_ok=True)
        (classes_root / "build.txt").write_text(build, encoding="utf-8")
        for jar in jars:
            write_jar(classes_root / "lib" / jar)
        for plugin_id, descriptor in (plugins or {}).items():
            write_jar(
                classes_root / "plugins" / plugin_id / "lib" / f"{plugin_id}.jar",
                {"META-INF/plugin.xml": descriptor},
            )
        return root

    return _make


@pytest.fixture
def make_ide_zip(tmp_path):
    """Create a zipped IDE distribution as published in the IDE repository."""

    def _make(name="ideaIC.zip", build="IC-222.4345.14", jars=("a.jar", "b.jar")):
        files = {"build.txt": build}
        for jar in jars:
            files[f"lib/{jar}"] = _jar_bytes(tmp_path, jar)
        return write_zip(tmp_path / "downloads" / name, files)

    return _make


@pytest.fixture
def make_plugin_zip(tmp_path):
    """Create a zipped plugin: ``<id>/lib/<id>.jar`` carrying its plugin.xml."""

    def _make(plugin_id, since=None, until=None, version="1.0", extra_jars=()):
        files = {
            f"{plugin_id}/lib/{plugin_id}.jar": _jar_bytes(
                tmp_path, f"{plugin_id}-{version}.jar",
                {"META-INF/plugin.xml": plugin_xml(plugin_id, since, until, version)},
            )
        }
        for jar in extra_jars:
            files[f"{plugin_id}/lib/{jar}"] = _jar_bytes(tmp_path, jar)
        return write_zip(tmp_path / "downloads" / f"{plugin_id}-{version}.zip", files)

    return _make
