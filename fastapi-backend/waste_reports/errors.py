"""Domain errors surfaced to the acting principal.

Every error carries the HTTP status the API answers with; `main.py` installs
a single exception handler that renders them as `{"detail": message}`.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger("app.errors")


class DomainError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Forbidden(DomainError):
    """The actor's role does not grant the requested read or mutation."""

    status_code = 403


class PreconditionFailed(DomainError):
    """A lifecycle ordering or required-field invariant would be violated."""

    status_code = 400


class StaleReport(PreconditionFailed):
    """The report changed since the version the client last saw."""

    status_code = 409


class NotFound(DomainError):
    status_code = 404


class RoleNotFound(NotFound):
    """No role record exists for an authenticated principal."""


class ExternalServiceError(DomainError):
    """The store, blob storage or another collaborator call failed."""

    status_code = 502


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


__all__ = [
    "DomainError",
    "Forbidden",
    "PreconditionFailed",
    "StaleReport",
    "NotFound",
    "RoleNotFound",
    "ExternalServiceError",
    "domain_error_handler",
]
