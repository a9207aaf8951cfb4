from __future__ import annotations

from pathlib import Path

from linkgiver_core.config import CoreConfig
from linkgiver_core.home import ensure_linkgiver_layout
from linkgiver_core.store import (
    URLS,
    FilesystemJSONStore,
    GitHubContentsStore,
    S3JSONStore,
    build_store,
)


def test_filesystem_is_the_default(tmp_path: Path) -> None:
    paths = ensure_linkgiver_layout(tmp_path)

    store = build_store(paths=paths, config=CoreConfig())

    assert isinstance(store, FilesystemJSONStore)
    assert store.path_for(URLS).parent == paths.data_dir
    assert store.max_retries == 1


def test_github_backend_selected_by_config(tmp_path: Path) -> None:
    paths = ensure_linkgiver_layout(tmp_path)
    cfg = CoreConfig.model_validate(
        {
            "storage": {
                "backend": "github",
                "max_conflict_retries": 3,
                "github": {"repo": "owner/data", "token": "t", "path_prefix": "links"},
            }
        }
    )

    store = build_store(paths=paths, config=cfg)

    assert isinstance(store, GitHubContentsStore)
    assert store.max_retries == 3


def test_s3_backend_selected_by_config(tmp_path: Path) -> None:
    paths = ensure_linkgiver_layout(tmp_path)
    cfg = CoreConfig.model_validate({"storage": {"backend": "s3", "s3": {"bucket": "b"}}})

    assert isinstance(build_store(paths=paths, config=cfg), S3JSONStore)
