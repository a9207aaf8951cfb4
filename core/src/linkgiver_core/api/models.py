from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from linkgiver_core.catalog import LinkView
from linkgiver_core.probe import PageMeta


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str


def fail(message: str) -> ErrorResponse:
    return ErrorResponse(ok=False, error=message)


class ServiceInfo(BaseModel):
    ok: bool = True
    service: str


class UrlsResponse(BaseModel):
    ok: bool = True
    enabled: bool
    urls: list[LinkView]


class ResolveResponse(LinkView):
    ok: bool = True


class ProbeRequest(BaseModel):
    url: str | None = None


class ProbeResponse(BaseModel):
    ok: bool = True
    meta: PageMeta


class LoginRequest(BaseModel):
    pin: Any = None


class LoginResponse(BaseModel):
    ok: bool = True
    token: str


class AddRequest(BaseModel):
    url: str | None = None
    title: str | None = None
    favicon: str | None = None


class AddResponse(BaseModel):
    ok: bool = True
    id: str


class RemoveResponse(BaseModel):
    ok: bool = True
    removed: int


class ToggleRequest(BaseModel):
    enabled: Any = None


class ToggleResponse(BaseModel):
    ok: bool = True
    enabled: bool
