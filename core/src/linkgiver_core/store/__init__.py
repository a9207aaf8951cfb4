from __future__ import annotations

from linkgiver_core.store.base import (
    PINS,
    STATE,
    URLS,
    DocumentRef,
    KeyedJSONStore,
    with_optimistic_update,
)
from linkgiver_core.store.filesystem import FilesystemJSONStore
from linkgiver_core.store.github import GitHubContentsStore
from linkgiver_core.store.manager import build_store
from linkgiver_core.store.s3 import S3JSONStore

__all__ = [
    "PINS",
    "STATE",
    "URLS",
    "DocumentRef",
    "FilesystemJSONStore",
    "GitHubContentsStore",
    "KeyedJSONStore",
    "S3JSONStore",
    "build_store",
    "with_optimistic_update",
]
