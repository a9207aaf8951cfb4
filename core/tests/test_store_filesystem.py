from __future__ import annotations

import json
from pathlib import Path

import pytest

from linkgiver_core.errors import StoreUnavailable, VersionConflict
from linkgiver_core.store import PINS, STATE, URLS, FilesystemJSONStore


def test_get_or_init_creates_missing_document(tmp_path: Path) -> None:
    store = FilesystemJSONStore(tmp_path)

    value, version = store.get_or_init(URLS)

    assert value == {"urls": []}
    assert version
    on_disk = json.loads((tmp_path / "urls.json").read_text(encoding="utf-8"))
    assert on_disk == {"urls": []}

    again, version_again = store.get_or_init(URLS)
    assert again == value
    assert version_again == version


def test_initial_value_is_not_shared_between_calls(tmp_path: Path) -> None:
    store = FilesystemJSONStore(tmp_path)

    value, _ = store.get_or_init(PINS)
    value["pins"].append("9999")

    assert PINS.initial == {"pins": ["1234"]}


def test_put_with_stale_version_conflicts(tmp_path: Path) -> None:
    store = FilesystemJSONStore(tmp_path)
    _, v1 = store.get_or_init(STATE)

    v2 = store.put(STATE, {"enabled": False}, v1)
    assert v2 != v1

    with pytest.raises(VersionConflict):
        store.put(STATE, {"enabled": True}, v1)

    assert store.read(STATE) == {"enabled": False}


def test_unconditional_put_overwrites(tmp_path: Path) -> None:
    store = FilesystemJSONStore(tmp_path)
    store.get_or_init(STATE)

    store.put(STATE, {"enabled": False})

    assert store.read(STATE) == {"enabled": False}


def test_update_returns_written_value(tmp_path: Path) -> None:
    store = FilesystemJSONStore(tmp_path)

    updated = store.update(URLS, lambda doc: {**doc, "urls": [*doc["urls"], {"id": "a"}]})

    assert updated == {"urls": [{"id": "a"}]}
    assert store.read(URLS) == updated


def test_invalid_json_is_reported_as_unavailable(tmp_path: Path) -> None:
    (tmp_path / "state.json").write_text("{not json", encoding="utf-8")
    store = FilesystemJSONStore(tmp_path)

    with pytest.raises(StoreUnavailable):
        store.read(STATE)


class _RacingStore(FilesystemJSONStore):
    """Lets another writer commit right before each of the first ``races`` conditional puts."""

    def __init__(self, base_dir: Path, *, races: int, max_retries: int = 1) -> None:
        super().__init__(base_dir, max_retries=max_retries)
        self.races = races
        self.rival = FilesystemJSONStore(base_dir)

    def put(self, doc, value, expected_version=None, *, message=None):
        if expected_version is not None and self.races > 0:
            self.races -= 1
            self.rival.update(doc, lambda d: {**d, "urls": [*d["urls"], {"id": "rival"}]})
        return super().put(doc, value, expected_version, message=message)


def test_update_retries_once_after_conflict(tmp_path: Path) -> None:
    store = _RacingStore(tmp_path, races=1)

    store.update(URLS, lambda d: {**d, "urls": [*d["urls"], {"id": "mine"}]})

    ids = [r["id"] for r in store.read(URLS)["urls"]]
    assert sorted(ids) == ["mine", "rival"]


def test_second_conflict_propagates(tmp_path: Path) -> None:
    store = _RacingStore(tmp_path, races=2)

    with pytest.raises(VersionConflict):
        store.update(URLS, lambda d: {**d, "urls": [*d["urls"], {"id": "mine"}]})

    ids = [r["id"] for r in store.read(URLS)["urls"]]
    assert ids == ["rival", "rival"]


def test_retry_budget_is_configurable(tmp_path: Path) -> None:
    store = _RacingStore(tmp_path, races=2, max_retries=2)

    store.update(URLS, lambda d: {**d, "urls": [*d["urls"], {"id": "mine"}]})

    ids = [r["id"] for r in store.read(URLS)["urls"]]
    assert ids == ["rival", "rival", "mine"]
