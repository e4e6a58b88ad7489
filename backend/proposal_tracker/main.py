from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from . import __version__
from .db.dynamodb.errors import DdbConflict, DdbError
from .errors import WorkflowError
from .middleware.access_log import AccessLogMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.cors import build_allowed_origins
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .responses import error_response
from .routers.activities import router as activities_router
from .routers.auth import router as auth_router
from .routers.files import router as files_router
from .routers.health import router as health_router
from .routers.notifications import router as notifications_router
from .routers.proposals import router as proposals_router
from .settings import settings


def create_app() -> FastAPI:
    configure_logging(level=settings.log_level.upper())
    log = get_logger("startup")

    app = FastAPI(
        title="Proposal Workflow Tracker",
        version=__version__,
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )

    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Last added is outermost. Auth runs inside CORS so 401s still get CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=build_allowed_origins(
            frontend_base_url=settings.frontend_base_url,
            frontend_urls=settings.frontend_urls,
        ),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=3000,
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(WorkflowError, _workflow_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _ddb_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(proposals_router, prefix="/api/proposals")
    app.include_router(files_router, prefix="/api/files")
    app.include_router(activities_router, prefix="/api/activities")
    app.include_router(notifications_router, prefix="/api/notifications")

    return app


def _workflow_error_handler(request: Request, exc: WorkflowError) -> Response:
    log = get_logger("errors")
    if exc.status_code >= 500:
        log.error("workflow_error", error=exc.error, message=exc.message, path=request.url.path)
    else:
        log.info(
            "request_rejected",
            status_code=exc.status_code,
            error=exc.error,
            message=exc.message,
            path=request.url.path,
        )
    return error_response(
        request=request,
        status_code=exc.status_code,
        error=exc.error,
        message=exc.message,
        details=exc.details,
    )


def _ddb_error_handler(request: Request, exc: DdbError) -> Response:
    # Storage errors that escaped the repositories. A failed condition is a
    # lost race (409); every other store failure is an internal error.
    if isinstance(exc, DdbConflict):
        return error_response(request=request, status_code=409, error="Conflict", message=exc.message)

    get_logger("errors").error(
        "storage_error",
        error_type=type(exc).__name__,
        message=exc.message,
        operation=exc.operation,
        table=exc.table_name,
        key=exc.key,
        aws_request_id=exc.aws_request_id,
        retryable=exc.retryable,
        path=request.url.path,
    )
    return error_response(request=request, status_code=500, message="Storage request failed")


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)
    message = str(detail) if isinstance(detail, str) else None
    if status_code == 404:
        message = "Route not found"
    elif status_code == 405:
        message = f"Method {request.method.upper()} not allowed"
    return error_response(request=request, status_code=status_code, message=message)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        errors.append(
            {
                "path": ".".join([str(x) for x in loc if x not in ("body", "query")]),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return error_response(
        request=request,
        status_code=400,
        error="Validation failed",
        message="Request validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    user = getattr(getattr(request, "state", None), "user", None)
    get_logger("unhandled").error(
        "unhandled_exception",
        http_method=str(getattr(request, "method", "") or "").upper() or None,
        path=request.url.path,
        user_sub=getattr(user, "sub", None),
        exc_info=exc,
    )
    return error_response(request=request, status_code=500, message=str(exc) or None)


app = create_app()
