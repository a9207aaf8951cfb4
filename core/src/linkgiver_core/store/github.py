from __future__ import annotations

import base64
import json
import logging
from urllib.parse import quote

import requests

from linkgiver_core.errors import StoreUnavailable, VersionConflict
from linkgiver_core.store.base import DocumentRef, JSONDoc, KeyedJSONStore

logger = logging.getLogger(__name__)

USER_AGENT = "weekly-link-giver/1.0"


class _NotFound(Exception):
    pass


class GitHubContentsStore(KeyedJSONStore):
    """JSON documents as files in a GitHub repository, via the contents API.

    Path: <path_prefix>/<name>.json on the configured branch.
    Version token: the blob sha GitHub reports for the file.
    """

    backend_name = "github"

    def __init__(
        self,
        *,
        repo: str,
        token: str | None,
        branch: str = "main",
        path_prefix: str = "data",
        api_url: str = "https://api.github.com",
        timeout_seconds: float = 10.0,
        max_retries: int = 1,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(max_retries=max_retries)
        self._repo = repo.strip().strip("/")
        self._branch = branch
        self._prefix = path_prefix.strip("/")
        self._base_url = f"{api_url.rstrip('/')}/repos/{self._repo}"
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token or ''}",
                "User-Agent": USER_AGENT,
                "Accept": "application/vnd.github+json",
            }
        )

    def path_for(self, doc: DocumentRef) -> str:
        name = f"{doc.name}.json"
        return f"{self._prefix}/{name}" if self._prefix else name

    def _contents_url(self, path: str) -> str:
        return f"{self._base_url}/contents/{quote(path)}"

    def _fetch(self, path: str) -> tuple[JSONDoc, str]:
        if not self._repo:
            raise StoreUnavailable("GitHub repository not configured")
        try:
            r = self._session.get(
                self._contents_url(path),
                params={"ref": self._branch},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise StoreUnavailable(f"GitHub read of {path} failed") from exc

        if r.status_code == 404:
            raise _NotFound(path)
        if r.status_code != 200:
            raise StoreUnavailable(f"GitHub read of {path} returned {r.status_code}")

        try:
            data = r.json()
            if not isinstance(data, dict):
                raise StoreUnavailable(f"{path} is not a file in the repository")
            content = base64.b64decode(data.get("content") or "").decode("utf-8")
            value = json.loads(content or "{}")
            sha = data["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreUnavailable(f"GitHub returned an unreadable {path}") from exc
        if not isinstance(value, dict):
            raise StoreUnavailable(f"Expected a JSON object in {path}")
        return value, sha

    def get_or_init(self, doc: DocumentRef) -> tuple[JSONDoc, str]:
        path = self.path_for(doc)
        try:
            return self._fetch(path)
        except _NotFound:
            pass

        value = doc.initial_value()
        try:
            sha = self.put(doc, value, None, message=f"init {path}")
        except VersionConflict:
            # Someone else created it between our read and write.
            logger.info("Lost the race to create %s; reading the winner", path)
            return self._fetch(path)
        return value, sha

    def put(
        self,
        doc: DocumentRef,
        value: JSONDoc,
        expected_version: str | None = None,
        *,
        message: str | None = None,
    ) -> str:
        if not self._repo:
            raise StoreUnavailable("GitHub repository not configured")

        path = self.path_for(doc)
        content = json.dumps(value, indent=2).encode("utf-8")
        payload: dict[str, str] = {
            "message": message or f"update {path}",
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self._branch,
        }
        if expected_version:
            payload["sha"] = expected_version

        try:
            r = self._session.put(self._contents_url(path), json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise StoreUnavailable(f"GitHub write of {path} failed") from exc

        if r.status_code == 409:
            raise VersionConflict(f"{path} changed since it was read")
        # Creating a file that already exists without a sha is rejected as unprocessable.
        if r.status_code == 422 and not expected_version:
            raise VersionConflict(f"{path} already exists")
        if r.status_code not in (200, 201):
            raise StoreUnavailable(f"GitHub write of {path} returned {r.status_code}")

        try:
            return r.json()["content"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreUnavailable(f"GitHub returned an unreadable write result for {path}") from exc
