import json
from pathlib import Path

import pytest

from conftest import MemoryStorage
from hotupdate.common.config import cfg
from hotupdate.core.errors import PersistFailed
from hotupdate.core.search_paths import ConfigSearchPathStorage, SearchPathPersister


def test_commit_prepends_new_roots():
    storage = MemoryStorage(["/app/res", "/app"])
    persister = SearchPathPersister(storage)

    paths = persister.commit(["/data/hotupdate", "/data/hotupdate/res"])

    assert paths == ["/data/hotupdate", "/data/hotupdate/res", "/app/res", "/app"]
    assert storage.writes == [paths]
    assert persister.current() == paths


def test_commit_keeps_duplicates():
    storage = MemoryStorage(["/data/hotupdate", "/app"])
    paths = SearchPathPersister(storage).commit(["/data/hotupdate"])
    assert paths == ["/data/hotupdate", "/data/hotupdate", "/app"]


def test_commit_failure_raises_persist_failed():
    storage = MemoryStorage(["/app"], fail=True)
    with pytest.raises(PersistFailed):
        SearchPathPersister(storage).commit(["/data/hotupdate"])
    assert storage.paths == ["/app"]


@pytest.fixture
def config_file(tmp_path: Path):
    original_file = cfg.file
    original_value = cfg.search_paths.value
    cfg.file = tmp_path / "config.json"
    yield cfg.file
    cfg.file = original_file
    cfg.search_paths.value = original_value


def test_config_storage_writes_fixed_key(config_file):
    cfg.search_paths.value = ["/app"]
    persister = SearchPathPersister(ConfigSearchPathStorage(cfg))

    paths = persister.commit(["/data/hotupdate"])

    assert paths == ["/data/hotupdate", "/app"]
    saved = json.loads(config_file.read_text(encoding="utf-8"))
    assert saved["HotUpdate"]["HotUpdateSearchPaths"] == ["/data/hotupdate", "/app"]


def test_config_storage_rolls_back_on_write_failure(config_file, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    cfg.file = blocker / "config.json"
    cfg.search_paths.value = ["/app"]

    with pytest.raises(PersistFailed):
        SearchPathPersister(ConfigSearchPathStorage(cfg)).commit(["/data/hotupdate"])
    assert cfg.get(cfg.search_paths) == ["/app"]


def test_config_storage_ignores_invalid_value(config_file):
    cfg.search_paths.value = "not-a-list"
    assert ConfigSearchPathStorage(cfg).read() == []
