"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from matchfeed.domain.exceptions import CoreError, DependencyError
from matchfeed.obs import logging as obs_logging

_LOG = logging.getLogger(__name__)


def _request_id(request: Request) -> str | None:
    rid = getattr(request.state, "request_id", None)
    return rid or obs_logging.current_request_id()


def _clean_errors(errors: list[dict]) -> list[dict]:
    # ctx may carry exception instances that are not JSON serialisable
    return [{key: value for key, value in error.items() if key != "ctx"} for error in errors]


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CoreError)
    async def core_exc_handler(request: Request, exc: CoreError):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": _request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(DependencyError)
    async def dependency_exc_handler(request: Request, exc: DependencyError):  # type: ignore[override]
        _LOG.warning("api.dependency_unavailable", extra={"path": request.url.path, "error": str(exc)})
        payload = {"detail": "dependency_unavailable", "request_id": _request_id(request)}
        return JSONResponse(status_code=503, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": _request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {
            "detail": "validation_error",
            "errors": _clean_errors(list(exc.errors())),
            "request_id": _request_id(request),
        }
        return JSONResponse(status_code=422, content=payload)
