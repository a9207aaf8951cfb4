from __future__ import annotations

import time
from typing import Any

import requests

from linkgiver_core.probe import PageMeta, extract_meta, origin_favicon, probe_page


class _Raw:
    """Body source handing out at most ``step`` bytes per read, optionally slowly."""

    def __init__(self, body: bytes, *, step: int = 1 << 20, delay: float = 0.0) -> None:
        self.body = body
        self.step = step
        self.delay = delay
        self.read_bytes = 0

    def read1(self, amt: int, decode_content: bool = True) -> bytes:
        if self.delay:
            time.sleep(self.delay)
        n = min(amt, self.step)
        chunk = self.body[self.read_bytes : self.read_bytes + n]
        self.read_bytes += len(chunk)
        return chunk


class _Resp:
    def __init__(
        self,
        body: bytes | str,
        status_code: int = 200,
        content_type: str = "text/html",
        raw: _Raw | None = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.raw = raw or _Raw(body)
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.encoding = requests.utils.get_encoding_from_headers(self.headers)
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def __enter__(self) -> _Resp:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True


class _Session:
    def __init__(self, response: _Resp | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> _Resp:
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def test_title_is_first_title_trimmed() -> None:
    html = "<html><head><title>\n  Weekly Pick  </title><title>Other</title></head></html>"
    meta = extract_meta(html, "https://example.com/post")
    assert meta.title == "Weekly Pick"


def test_icon_rel_preferred_over_shortcut_and_apple() -> None:
    html = """
    <head>
      <link rel="apple-touch-icon" href="/apple.png">
      <link rel="shortcut icon" href="/shortcut.ico">
      <link rel="icon" href="img/icon.png">
    </head>
    """
    meta = extract_meta(html, "https://example.com/blog/post")
    assert meta.favicon == "https://example.com/blog/img/icon.png"


def test_shortcut_icon_used_when_no_plain_icon() -> None:
    html = """
    <head>
      <link rel="apple-touch-icon" href="/apple.png">
      <link rel="shortcut icon" href="//cdn.example.net/s.ico">
    </head>
    """
    meta = extract_meta(html, "https://example.com/")
    assert meta.favicon == "https://cdn.example.net/s.ico"


def test_apple_touch_icon_is_last_resort_link() -> None:
    html = '<head><link rel="apple-touch-icon" href="https://static.example.com/a.png"></head>'
    meta = extract_meta(html, "https://example.com/")
    assert meta.favicon == "https://static.example.com/a.png"


def test_no_icon_links_falls_back_to_origin() -> None:
    meta = extract_meta("<html><body>hi</body></html>", "http://example.com:8080/a/b?c=1")
    assert meta == PageMeta(title="", favicon="http://example.com:8080/favicon.ico")


def test_page_fetch_streams_with_timeout_and_agent() -> None:
    resp = _Resp("<title>Hello</title>")
    session = _Session(resp)

    meta = probe_page("https://example.com", timeout=3, user_agent="ua/1", session=session)

    assert meta.title == "Hello"
    assert meta.favicon == "https://example.com/favicon.ico"
    url, kwargs = session.calls[0]
    assert url == "https://example.com"
    assert kwargs["timeout"] == 3
    assert kwargs["stream"] is True
    assert kwargs["headers"] == {"User-Agent": "ua/1"}
    assert resp.closed


def test_meta_charset_used_when_header_has_none() -> None:
    body = '<html><head><meta charset="utf-8"><title>Café Ünïcode</title></head></html>'
    session = _Session(_Resp(body.encode("utf-8"), content_type="text/html"))

    meta = probe_page("https://example.com", session=session)

    assert meta.title == "Café Ünïcode"


def test_header_charset_wins() -> None:
    body = "<title>Crème brûlée</title>".encode("cp1252")
    session = _Session(_Resp(body, content_type="text/html; charset=windows-1252"))

    meta = probe_page("https://example.com", session=session)

    assert meta.title == "Crème brûlée"


def test_slow_body_is_cut_off_at_the_deadline() -> None:
    raw = _Raw(b"<title>" + b"x" * 200 + b"</title>", step=1, delay=0.1)
    session = _Session(_Resp(b"", raw=raw))

    started = time.monotonic()
    meta = probe_page("https://slow.example.org/page", timeout=0.5, session=session)
    elapsed = time.monotonic() - started

    assert elapsed < 1.5
    assert meta == PageMeta(title="", favicon="https://slow.example.org/favicon.ico")


def test_body_read_stops_at_byte_cap() -> None:
    raw = _Raw(b"<title>Big page</title>" + b"a" * 500_000, step=4096)
    session = _Session(_Resp(b"", raw=raw))

    meta = probe_page("https://example.com", max_bytes=10_000, session=session)

    assert meta.title == "Big page"
    assert raw.read_bytes == 10_000


def test_probe_page_never_raises_on_network_error() -> None:
    session = _Session(error=requests.ConnectTimeout("slow"))

    meta = probe_page("https://slow.example.org/x", session=session)

    assert meta == PageMeta(title="", favicon="https://slow.example.org/favicon.ico")


def test_probe_page_http_error_degrades() -> None:
    session = _Session(_Resp("<title>Gone</title>", status_code=404))

    meta = probe_page("https://example.org/missing", session=session)

    assert meta.title == ""
    assert meta.favicon == "https://example.org/favicon.ico"


def test_origin_favicon_needs_scheme_and_host() -> None:
    assert origin_favicon("not a url") == ""
    assert origin_favicon("https://a.example/x") == "https://a.example/favicon.ico"
