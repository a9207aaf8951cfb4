from __future__ import annotations

import functools
import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkgiver_core import __version__
from linkgiver_core.api.models import ServiceInfo, fail
from linkgiver_core.api.routes import router as api_router
from linkgiver_core.auth import AccessGate, InMemorySessionStore, SessionStore
from linkgiver_core.catalog import LinkCatalog, Probe
from linkgiver_core.config import CoreConfig, apply_env_overrides, load_core_config
from linkgiver_core.errors import RequestError
from linkgiver_core.home import ensure_linkgiver_layout, resolve_linkgiver_home
from linkgiver_core.probe import probe_page
from linkgiver_core.store import KeyedJSONStore, build_store

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-site",
}


def _cors_origins(config: CoreConfig) -> list[str]:
    origin = config.cors.frontend_origin.strip()
    if not origin or origin == "*":
        return ["*"]
    return [origin]


def create_app(
    *,
    store: KeyedJSONStore | None = None,
    probe: Probe | None = None,
    sessions: SessionStore | None = None,
) -> FastAPI:
    """Build the API.

    Home and config are resolved here so the CORS allow-list is known before
    middleware is installed. Store, probe and session store may be injected;
    otherwise they are built from config during startup.
    """

    home = resolve_linkgiver_home()
    paths = ensure_linkgiver_layout(home)
    config = apply_env_overrides(load_core_config(paths), os.environ)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        # Configure Logging
        log_path = paths.logs_dir / "core.log"
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)

        root = logging.getLogger()
        root.setLevel(logging.INFO)
        # Avoid adding duplicate handlers if reloaded
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            root.addHandler(file_handler)

        logger.info("%s starting up", config.service_name)
        logger.info(f"Logs directory: {paths.logs_dir}")

        app.state.linkgiver_home = home
        app.state.linkgiver_paths = paths
        app.state.linkgiver_config = config

        active_store = store or build_store(paths=paths, config=config)
        active_probe = probe or functools.partial(
            probe_page,
            timeout=config.probe.timeout_seconds,
            user_agent=config.probe.user_agent,
            max_bytes=config.probe.max_bytes,
        )
        app.state.store = active_store
        app.state.catalog = LinkCatalog(active_store, active_probe)
        app.state.access_gate = AccessGate(active_store, sessions or InMemorySessionStore())

        yield

    app = FastAPI(title="Weekly Link Giver", version=__version__, lifespan=_lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > config.http.max_body_bytes:
            response = JSONResponse(
                status_code=413,
                content=fail("payload too large").model_dump(mode="json"),
            )
        else:
            response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(config),
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=fail("invalid request").model_dump(mode="json"),
        )

    @app.exception_handler(RequestError)
    async def _request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(exc.message).model_dump(mode="json"),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(str(exc.detail)).model_dump(mode="json"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(exc.detail if isinstance(exc.detail, str) else "HTTP error").model_dump(
                mode="json"
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=fail("Internal server error").model_dump(mode="json"),
        )

    app.include_router(api_router)

    @app.get("/", response_model=ServiceInfo)
    async def root() -> ServiceInfo:
        return ServiceInfo(service=config.service_name)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
