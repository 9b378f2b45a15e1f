import asyncio
import hashlib
import json
import os
import sys
import threading
from pathlib import Path

import pytest

# 添加项目根目录到Python路径，解决导入问题
sys.path.append(os.path.dirname(os.path.abspath(__file__)) + "/..")

from hotupdate.common.signal_bus import SignalBus
from hotupdate.core.errors import FetchErrorKind, TransportError
from hotupdate.core.manifest import ManifestStore
from hotupdate.core.search_paths import SearchPathStorage
from hotupdate.utils.transport import Transport

PACKAGE_URL = "https://cdn.example.com/pkg/"
MANIFEST_URL = "https://cdn.example.com/project.manifest"
VERSION_URL = "https://cdn.example.com/version.manifest"


def asset_doc(content: bytes, compressed: bool = False) -> dict:
    return {
        "md5": hashlib.md5(content).hexdigest(),
        "size": len(content),
        "compressed": compressed,
    }


def manifest_doc(version: str, contents: dict[str, bytes], **extra) -> dict:
    doc = {
        "packageUrl": PACKAGE_URL,
        "remoteManifestUrl": MANIFEST_URL,
        "version": version,
        "assets": {path: asset_doc(data) for path, data in contents.items()},
        "searchPaths": [],
    }
    doc.update(extra)
    return doc


class FakeTransport(Transport):
    """内存中的传输层，documents/assets 以 URL 为键"""

    def __init__(self):
        self.documents: dict[str, str] = {}
        self.assets: dict[str, bytes] = {}
        self.fail_urls: set[str] = set()
        self.fetched: list[str] = []
        self.downloads: list[str] = []
        self.stop_events: list[threading.Event | None] = []
        self.written: list[Path] = []
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    def serve_manifest(self, doc: dict, url: str = MANIFEST_URL):
        self.documents[url] = json.dumps(doc)

    def serve_assets(self, contents: dict[str, bytes]):
        for path, data in contents.items():
            self.assets[PACKAGE_URL + path] = data

    async def fetch_text(self, url: str) -> str:
        self.fetched.append(url)
        await asyncio.sleep(0)
        if url not in self.documents:
            raise TransportError(FetchErrorKind.BAD_STATUS, f"404 for {url}", 404)
        return self.documents[url]

    async def download(
        self, url: str, file_path: Path, stop_event: threading.Event | None = None
    ) -> Path:
        self.downloads.append(url)
        self.stop_events.append(stop_event)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            if stop_event is not None and stop_event.is_set():
                raise TransportError(FetchErrorKind.UNREACHABLE, "cancelled")
            if url in self.fail_urls or url not in self.assets:
                raise TransportError(FetchErrorKind.UNREACHABLE, f"connection reset: {url}")
            Path(file_path).write_bytes(self.assets[url])
            self.written.append(Path(file_path))
            return Path(file_path)
        finally:
            self.in_flight -= 1


class MemoryStorage(SearchPathStorage):
    def __init__(self, paths=None, fail=False):
        self.paths = list(paths or [])
        self.fail = fail
        self.writes: list[list[str]] = []

    def read(self) -> list[str]:
        return list(self.paths)

    def write(self, paths: list[str]) -> None:
        if self.fail:
            raise OSError("disk full")
        self.writes.append(list(paths))
        self.paths = list(paths)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def bundled(tmp_path: Path) -> Path:
    return tmp_path / "bundle" / "project.manifest"


@pytest.fixture
def write_bundled(bundled: Path):
    def _write(doc: dict):
        bundled.parent.mkdir(parents=True, exist_ok=True)
        bundled.write_text(json.dumps(doc), encoding="utf-8")
        return bundled

    return _write


@pytest.fixture
def store(transport, bundled, storage_dir):
    return ManifestStore(transport, bundled, storage_dir)


@pytest.fixture
def bus():
    return SignalBus()
