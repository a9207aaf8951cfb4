from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from linkgiver_core.api.models import (
    AddRequest,
    AddResponse,
    LoginRequest,
    LoginResponse,
    ProbeRequest,
    ProbeResponse,
    RemoveResponse,
    ResolveResponse,
    ToggleRequest,
    ToggleResponse,
    UrlsResponse,
)
from linkgiver_core.auth import AccessGate, require_admin
from linkgiver_core.catalog import LinkCatalog
from linkgiver_core.errors import InvalidRequest, RequestError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])
admin_router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@contextmanager
def _fails_with(message: str) -> Iterator[None]:
    """Report any unexpected failure inside the block as a 500 with a fixed message."""

    try:
        yield
    except (RequestError, HTTPException):
        raise
    except Exception as exc:
        logger.exception("Request failed: %s", message)
        raise HTTPException(status_code=500, detail=message) from exc


def _catalog(request: Request) -> LinkCatalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=500, detail="Catalog not initialized")
    return catalog


def _gate(request: Request) -> AccessGate:
    gate = getattr(request.app.state, "access_gate", None)
    if gate is None:
        raise HTTPException(status_code=500, detail="Access gate not initialized")
    return gate


@router.get("/urls", response_model=UrlsResponse)
def urls_list(
    request: Request,
    show_all: str | None = Query(default=None, alias="all"),
) -> UrlsResponse:
    catalog = _catalog(request)
    with _fails_with("read failed"):
        enabled, links = catalog.list_links(include_inactive=show_all == "1")
    return UrlsResponse(enabled=enabled, urls=links)


@router.get("/resolve/{link_id}", response_model=ResolveResponse)
def urls_resolve(request: Request, link_id: str) -> ResolveResponse:
    catalog = _catalog(request)
    with _fails_with("resolve failed"):
        link = catalog.resolve(link_id)
    return ResolveResponse(**link.model_dump())


@router.post("/probe", response_model=ProbeResponse)
def probe(request: Request, payload: ProbeRequest | None = None) -> ProbeResponse:
    url = payload.url if payload is not None else None
    if not url:
        raise InvalidRequest("url required")

    catalog = _catalog(request)
    with _fails_with("probe failed"):
        meta = catalog.probe(url)
    return ProbeResponse(meta=meta)


@router.post("/admin/login", response_model=LoginResponse)
def admin_login(request: Request, payload: LoginRequest | None = None) -> LoginResponse:
    gate = _gate(request)
    pin = payload.pin if payload is not None else None
    with _fails_with("login failed"):
        token = gate.login(pin)
    return LoginResponse(token=token)


@admin_router.post("/add", response_model=AddResponse)
def admin_add(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: AddRequest | None = None,
) -> AddResponse:
    if payload is None or not payload.url:
        raise InvalidRequest("url required")

    catalog = _catalog(request)
    with _fails_with("add failed"):
        link_id = catalog.add(
            payload.url,
            title=payload.title,
            favicon=payload.favicon,
            defer=background_tasks.add_task,
        )
    return AddResponse(id=link_id)


@admin_router.delete("/remove/{link_id}", response_model=RemoveResponse)
def admin_remove(request: Request, link_id: str) -> RemoveResponse:
    catalog = _catalog(request)
    with _fails_with("remove failed"):
        removed = catalog.remove(link_id)
    return RemoveResponse(removed=removed)


@admin_router.post("/toggle", response_model=ToggleResponse)
def admin_toggle(request: Request, payload: ToggleRequest | None = None) -> ToggleResponse:
    enabled = payload.enabled if payload is not None else None
    if not isinstance(enabled, bool):
        raise InvalidRequest("enabled boolean required")

    catalog = _catalog(request)
    with _fails_with("toggle failed"):
        current = catalog.set_enabled(enabled)
    return ToggleResponse(enabled=current)


router.include_router(admin_router)
