from __future__ import annotations

import logging

from linkgiver_core.config import CoreConfig, resolve_data_dir
from linkgiver_core.home import LinkGiverPaths
from linkgiver_core.store.base import KeyedJSONStore
from linkgiver_core.store.filesystem import FilesystemJSONStore
from linkgiver_core.store.github import GitHubContentsStore
from linkgiver_core.store.s3 import S3JSONStore

logger = logging.getLogger(__name__)


def build_store(*, paths: LinkGiverPaths, config: CoreConfig) -> KeyedJSONStore:
    storage = config.storage
    retries = storage.max_conflict_retries

    if storage.backend == "github":
        gh = storage.github
        store: KeyedJSONStore = GitHubContentsStore(
            repo=gh.repo,
            token=gh.token,
            branch=gh.branch,
            path_prefix=gh.path_prefix,
            api_url=gh.api_url,
            timeout_seconds=gh.timeout_seconds,
            max_retries=retries,
        )
    elif storage.backend == "s3":
        s3 = storage.s3
        store = S3JSONStore(
            bucket=s3.bucket,
            prefix=s3.prefix,
            endpoint_url=s3.endpoint_url,
            access_key=(s3.access_key or "").strip() or None,
            secret_key=(s3.secret_key or "").strip() or None,
            region=s3.region,
            use_ssl=s3.use_ssl,
            max_retries=retries,
        )
    elif storage.backend == "fs":
        store = FilesystemJSONStore(resolve_data_dir(paths, config), max_retries=retries)
    else:
        raise ValueError(f"Unsupported storage backend: {storage.backend}")

    logger.info("Using %s storage backend", store.backend_name)
    return store
