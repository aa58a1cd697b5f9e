"""FastAPI plumbing shared by the agent service and the orchestrator."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .errors import ErrorCategory, StageFailureError, StructuredError, ValidationError
from .logging import correlation_id_middleware

logger = logging.getLogger("a2a_agents.api")


def error_status(error: StructuredError) -> int:
    """HTTP status for a structured error.

    400 validation, 502 workflow stage failure, 504 timeout class,
    503 other retryable failures, 500 everything else.
    """
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, StageFailureError):
        return 502
    if error.category is ErrorCategory.TIMEOUT:
        return 504
    if error.retryable:
        return 503
    return 500


def _structured_error_handler(request: Request, exc: StructuredError) -> JSONResponse:
    cid = getattr(request.state, "correlation_id", None)
    if cid:
        exc.add_context(correlation_id=cid)
    status = error_status(exc)
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, status, type(exc).__name__, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return _structured_error_handler(
        request,
        ValidationError("Invalid request format", details={"errors": errors})
    )


def configure_app(app: FastAPI) -> FastAPI:
    """Install correlation ids, structured error bodies and ``/metrics``."""
    app.middleware("http")(correlation_id_middleware)
    app.add_exception_handler(StructuredError, _structured_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
