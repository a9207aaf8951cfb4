from __future__ import annotations

import hashlib
import json
import os
import tempfile
import threading
from pathlib import Path

from linkgiver_core.errors import StoreUnavailable, VersionConflict
from linkgiver_core.store.base import DocumentRef, JSONDoc, KeyedJSONStore


def _encode(value: JSONDoc) -> bytes:
    return (json.dumps(value, indent=2) + "\n").encode("utf-8")


def _version_of(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


class FilesystemJSONStore(KeyedJSONStore):
    """JSON documents as files on local disk.

    Layout: <base_dir>/<name>.json
    Version token: SHA-256 hex of the file bytes.

    Only writers inside this process are serialized; a second process writing the same
    directory is detected as a version conflict at best.
    """

    backend_name = "fs"

    def __init__(self, base_dir: Path, *, max_retries: int = 1) -> None:
        super().__init__(max_retries=max_retries)
        self._base_dir = base_dir
        self._lock = threading.RLock()

    def path_for(self, doc: DocumentRef) -> Path:
        return self._base_dir / f"{doc.name}.json"

    def _read_raw(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreUnavailable(f"Cannot read {path.name}") from exc

    def _write_raw(self, path: Path, raw: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "wb") as out:
                    out.write(raw)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StoreUnavailable(f"Cannot write {path.name}") from exc

    def get_or_init(self, doc: DocumentRef) -> tuple[JSONDoc, str]:
        path = self.path_for(doc)
        with self._lock:
            raw = self._read_raw(path)
            if raw is None:
                value = doc.initial_value()
                raw = _encode(value)
                self._write_raw(path, raw)
                return value, _version_of(raw)

            try:
                value = json.loads(raw.decode("utf-8") or "{}")
            except ValueError as exc:
                raise StoreUnavailable(f"Invalid JSON in {path.name}") from exc
            if not isinstance(value, dict):
                raise StoreUnavailable(f"Expected a JSON object in {path.name}")
            return value, _version_of(raw)

    def put(
        self,
        doc: DocumentRef,
        value: JSONDoc,
        expected_version: str | None = None,
        *,
        message: str | None = None,
    ) -> str:
        path = self.path_for(doc)
        raw = _encode(value)
        with self._lock:
            if expected_version is not None:
                current = self._read_raw(path)
                current_version = _version_of(current) if current is not None else None
                if current_version != expected_version:
                    raise VersionConflict(f"{path.name} changed since it was read")
            self._write_raw(path, raw)
        return _version_of(raw)
