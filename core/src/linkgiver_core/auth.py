from __future__ import annotations

import secrets
import threading
from datetime import UTC, datetime
from typing import Final, Protocol

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from linkgiver_core.errors import InvalidCredentials, Unauthorized
from linkgiver_core.store.base import PINS, KeyedJSONStore

AUTHORIZATION_HEADER: Final[str] = "Authorization"
TOKEN_PREFIX: Final[str] = "adm_"

_bearer_scheme = HTTPBearer(auto_error=False)


class SessionStore(Protocol):
    def add(self, token: str) -> None: ...

    def contains(self, token: str) -> bool: ...


class InMemorySessionStore:
    """Admin tokens mapped to their issue time; lives as long as the process."""

    def __init__(self) -> None:
        self._tokens: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add(self, token: str) -> None:
        with self._lock:
            self._tokens[token] = datetime.now(UTC)

    def contains(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def issued_at(self, token: str) -> datetime | None:
        with self._lock:
            return self._tokens.get(token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


def new_admin_token() -> str:
    return TOKEN_PREFIX + secrets.token_urlsafe(16)


def _is_scalar_pin(pin: object) -> bool:
    return isinstance(pin, (str, int)) and not isinstance(pin, bool)


class AccessGate:
    def __init__(self, store: KeyedJSONStore, sessions: SessionStore) -> None:
        self._store = store
        self._sessions = sessions

    def check_pin(self, pin: object) -> bool:
        doc = self._store.read(PINS)
        submitted = str(pin).encode("utf-8")
        return any(
            secrets.compare_digest(str(candidate).encode("utf-8"), submitted)
            for candidate in doc.get("pins") or []
        )

    def login(self, pin: object) -> str:
        if not _is_scalar_pin(pin) or not pin or not self.check_pin(pin):
            raise InvalidCredentials()
        token = new_admin_token()
        self._sessions.add(token)
        return token

    def authenticate(self, token: str | None) -> None:
        if not token or not self._sessions.contains(token):
            raise Unauthorized()


def extract_bearer_token(request: Request) -> str | None:
    auth = request.headers.get(AUTHORIZATION_HEADER)
    if not auth:
        return None

    prefix = "Bearer "
    if auth.startswith(prefix):
        return auth[len(prefix) :].strip() or None
    return auth.strip() or None


async def require_admin(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Security(_bearer_scheme),  # noqa: B008
) -> None:
    """Reject the request unless it carries a token issued by /api/admin/login."""

    gate: AccessGate | None = getattr(request.app.state, "access_gate", None)
    if gate is None:
        raise Unauthorized()

    provided = bearer.credentials if bearer is not None else extract_bearer_token(request)
    gate.authenticate(provided)
