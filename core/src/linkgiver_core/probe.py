from __future__ import annotations

import logging
import time
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 8.0
DEFAULT_USER_AGENT = "weekly-link-giver/1.0"
DEFAULT_MAX_BYTES = 1024 * 1024
CHUNK_BYTES = 16 * 1024

# Checked in order; the first link with a non-empty href wins.
ICON_RELS = ("icon", "shortcut icon", "apple-touch-icon")


class PageMeta(BaseModel):
    title: str = ""
    favicon: str = ""


def origin_favicon(url: str) -> str:
    """Return <scheme>://<host>/favicon.ico, or "" when url has no usable origin."""

    try:
        parsed = urlparse(url)
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}/favicon.ico"


def _rel_of(tag) -> str:
    rel = tag.get("rel")
    if isinstance(rel, list):
        rel = " ".join(rel)
    return (rel or "").strip().lower()


def extract_meta(html: str | bytes, page_url: str, *, encoding: str | None = None) -> PageMeta:
    """Pull title and favicon out of a page.

    Bytes are decoded by BeautifulSoup: ``encoding`` (from the Content-Type header) wins,
    otherwise the document's own <meta charset> is honoured.
    """

    if isinstance(html, bytes):
        soup = BeautifulSoup(html, "html.parser", from_encoding=encoding)
    else:
        soup = BeautifulSoup(html, "html.parser")

    title = ""
    title_tag = soup.find("title")
    if title_tag is not None:
        title = title_tag.get_text().strip()

    links = soup.find_all("link")
    href = ""
    for rel_name in ICON_RELS:
        for link in links:
            if _rel_of(link) == rel_name:
                href = (link.get("href") or "").strip()
                break
        if href:
            break

    favicon = urljoin(page_url, href) if href else origin_favicon(page_url)
    return PageMeta(title=title, favicon=favicon)


def header_charset(resp: requests.Response) -> str | None:
    """The charset named in Content-Type, if any; requests' ISO-8859-1 default is ignored."""

    content_type = resp.headers.get("Content-Type") or ""
    if "charset=" not in content_type.lower():
        return None
    return resp.encoding


def read_capped(resp: requests.Response, *, deadline: float, max_bytes: int) -> bytes:
    """Read at most max_bytes of a streamed body, giving up once deadline passes.

    Each read returns as soon as any bytes arrive, so a slow sender is cut off
    close to the deadline instead of after one socket timeout per byte.
    """

    body = bytearray()
    while len(body) < max_bytes:
        if time.monotonic() >= deadline:
            raise requests.Timeout("page fetch exceeded its deadline")
        chunk = resp.raw.read1(min(CHUNK_BYTES, max_bytes - len(body)), decode_content=True)
        if not chunk:
            break
        body += chunk
    return bytes(body[:max_bytes])


def probe_page(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    session: requests.Session | None = None,
) -> PageMeta:
    """Best-effort title and favicon for url.

    ``timeout`` bounds the whole fetch and only the first ``max_bytes`` of the body
    are read. Never raises: fetch or parse failures degrade to an empty title and the
    origin /favicon.ico fallback.
    """

    http = session or requests
    deadline = time.monotonic() + timeout
    try:
        with http.get(
            url,
            timeout=timeout,
            headers={"User-Agent": user_agent},
            stream=True,
        ) as resp:
            resp.raise_for_status()
            body = read_capped(resp, deadline=deadline, max_bytes=max_bytes)
            return extract_meta(body, url, encoding=header_charset(resp))
    except Exception as exc:
        logger.info("Metadata probe of %s failed: %s", url, exc)
        return PageMeta(title="", favicon=origin_favicon(url))
