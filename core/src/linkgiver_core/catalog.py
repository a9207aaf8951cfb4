from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from linkgiver_core.errors import AccessDisabled, NotFound
from linkgiver_core.probe import PageMeta
from linkgiver_core.store.base import STATE, URLS, JSONDoc, KeyedJSONStore

logger = logging.getLogger(__name__)

LINK_ID_LENGTH = 10

Probe = Callable[[str], PageMeta]
Defer = Callable[..., Any]


class LinkRecord(BaseModel):
    """One entry of the urls document, as persisted."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    title: str = ""
    favicon: str = ""
    active: bool = True
    created_at: int = Field(alias="createdAt")


class LinkView(BaseModel):
    """The public projection of a record."""

    id: str
    title: str = ""
    favicon: str = ""
    url: str


def _to_view(record: dict[str, Any]) -> LinkView:
    return LinkView(
        id=record["id"],
        title=record.get("title") or "",
        favicon=record.get("favicon") or "",
        url=record.get("url") or "",
    )


def _is_active(record: dict[str, Any]) -> bool:
    return record.get("active") is not False


def new_link_id(taken: set[str]) -> str:
    while True:
        candidate = secrets.token_urlsafe(8)[:LINK_ID_LENGTH]
        if candidate not in taken:
            return candidate


def now_ms() -> int:
    return int(time.time() * 1000)


class LinkCatalog:
    def __init__(self, store: KeyedJSONStore, probe: Probe) -> None:
        self.store = store
        self.probe = probe

    def is_enabled(self) -> bool:
        return bool(self.store.read(STATE).get("enabled"))

    def _records(self) -> list[dict[str, Any]]:
        return list(self.store.read(URLS).get("urls") or [])

    def list_links(self, *, include_inactive: bool = False) -> tuple[bool, list[LinkView]]:
        records = self._records()
        enabled = self.is_enabled()
        if not include_inactive:
            records = [r for r in records if _is_active(r)]
        return enabled, [_to_view(r) for r in records]

    def resolve(self, link_id: str) -> LinkView:
        if not self.is_enabled():
            raise AccessDisabled()

        for record in self._records():
            if record.get("id") == link_id and _is_active(record):
                return _to_view(record)
        raise NotFound()

    def add(
        self,
        url: str,
        title: str | None = None,
        favicon: str | None = None,
        *,
        defer: Defer | None = None,
    ) -> str:
        """Append a new active record and return its id.

        When title or favicon is missing, a metadata backfill is handed to ``defer``
        (e.g. BackgroundTasks.add_task) or run inline when no scheduler is given.
        """

        new_id = ""

        def _append(doc: JSONDoc) -> JSONDoc:
            nonlocal new_id
            urls = list(doc.get("urls") or [])
            new_id = new_link_id({str(r.get("id")) for r in urls})
            record = LinkRecord(
                id=new_id,
                url=url,
                title=title or "",
                favicon=favicon or "",
                active=True,
                created_at=now_ms(),
            )
            urls.append(record.model_dump(by_alias=True))
            return {**doc, "urls": urls}

        self.store.update(URLS, _append, message="admin add url")
        logger.info("Added link %s -> %s", new_id, url)

        if not title or not favicon:
            if defer is not None:
                defer(self.backfill_metadata, new_id, url)
            else:
                self.backfill_metadata(new_id, url)
        return new_id

    def backfill_metadata(self, link_id: str, url: str) -> None:
        """Fill empty title/favicon of a record from a page probe.

        Best effort: the record may already be gone, and any failure is logged and dropped.
        """

        try:
            meta = self.probe(url)
            fallback_title = urlparse(url).hostname or ""

            def _fill(doc: JSONDoc) -> JSONDoc:
                urls = list(doc.get("urls") or [])
                for i, record in enumerate(urls):
                    if record.get("id") == link_id:
                        urls[i] = {
                            **record,
                            "title": record.get("title") or meta.title or fallback_title,
                            "favicon": record.get("favicon") or meta.favicon or "",
                        }
                        return {**doc, "urls": urls}
                raise NotFound()

            self.store.update(URLS, _fill, message="fill title/favicon")
        except NotFound:
            logger.info("Link %s was removed before its metadata arrived", link_id)
        except Exception:
            logger.warning("Metadata backfill for link %s failed", link_id, exc_info=True)

    def remove(self, link_id: str) -> int:
        removed = 0

        def _drop(doc: JSONDoc) -> JSONDoc:
            nonlocal removed
            urls = list(doc.get("urls") or [])
            kept = [r for r in urls if r.get("id") != link_id]
            removed = len(urls) - len(kept)
            return {**doc, "urls": kept}

        self.store.update(URLS, _drop, message="admin remove url")
        if removed:
            logger.info("Removed link %s", link_id)
        return removed

    def set_enabled(self, enabled: bool) -> bool:
        updated = self.store.update(
            STATE,
            lambda _doc: {"enabled": enabled},
            message="toggle service state",
        )
        logger.info("Service %s", "enabled" if updated["enabled"] else "disabled")
        return bool(updated["enabled"])
