from __future__ import annotations


class LinkGiverError(Exception):
    """Root of every error raised by linkgiver_core."""


class RequestError(LinkGiverError):
    """A failure caused by the caller; carries the HTTP status and a public message."""

    status_code: int = 400
    message: str = "bad request"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidRequest(RequestError):
    status_code = 400
    message = "invalid request"


class Unauthorized(RequestError):
    status_code = 401
    message = "unauthorized"


class InvalidCredentials(Unauthorized):
    message = "bad pin"


class AccessDisabled(RequestError):
    status_code = 403
    message = "Access disabled"


class NotFound(RequestError):
    status_code = 404
    message = "Not found"


class StoreError(LinkGiverError):
    pass


class StoreUnavailable(StoreError):
    """The backing store could not be read or written (I/O, network, auth, bad JSON)."""


class VersionConflict(StoreError):
    """A conditional write lost against a concurrent writer."""
