"""Tally API - FastAPI Application Entry Point."""

import logging
import os
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tally_api.access.errors import AccessError
from tally_api.config.env import get_cors_allowed_origins
from tally_api.context import org_id_var, request_id_var, user_id_var
from tally_api.routers import (
    auth,
    favorites,
    health,
    invites,
    organization,
    projects,
    recurring,
    reports,
    templates,
    time_entries,
)
from tally_api.routers.health import API_VERSION
from tally_api.schemas import ProblemDetail
from tally_api.utils import configure_json_logging

app = FastAPI(
    title="Tally API",
    description="Multi-tenant time tracking with organizations, shared projects and RFC 9457 error handling.",
    version=API_VERSION,
    docs_url="/api-docs",
    redoc_url="/redoc",
)

# Set TALLY_JSON_LOGS=false to disable (defaults to true for production)
if os.getenv("TALLY_JSON_LOGS", "true").lower() != "false":
    configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
    logger = logging.getLogger(__name__)
    logger.info("Structured JSON logging enabled")

# credentials mode CANNOT use wildcard origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)


# ============================================================================
# Request Completion Logging
# ============================================================================


@app.middleware("http")
async def http_completion_logging_middleware(request: Request, call_next):
    """Log every HTTP request completion with observability fields.

    - Every HTTP request emits "http.request.completed" log
    - Fields: request_id, method, path, status_code, duration_ms
    - user_id / org_id come from context once session auth has run
    - Logs even on exceptions (status_code=500)

    Per-request contextvars are cleared at start and end so they never leak
    across requests when async tasks are reused.
    """
    user_id_var.set("")
    org_id_var.set("")

    start_time = time.perf_counter()
    status_code = 500  # Default to 500 in case of unhandled exception

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000

        # Note: TestClient's BlockingPortal may create a separate async context,
        # preventing contextvar propagation in tests. Use response headers in tests.
        logging.getLogger(__name__).info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        user_id_var.set("")
        org_id_var.set("")


# ============================================================================
# Request ID Middleware (MUST BE OUTERMOST)
# ============================================================================


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Generate and propagate request_id for observability.

    - Accepts X-Request-ID header from client (optional)
    - Generates new UUID if not provided
    - Sets context variable for logging
    - Returns X-Request-ID in response headers

    IMPORTANT: This MUST be registered LAST (outermost middleware) so
    request_id is set in the parent async context before other middlewares execute.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


def _instance() -> str:
    """Opaque instance identifier built from the request id."""
    request_id = request_id_var.get()
    return f"urn:tally:trace:{request_id}" if request_id else f"urn:tally:trace:{uuid.uuid4()}"


@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    """Map authorization failures to problem+json.

    401 responses carry WWW-Authenticate: Bearer.
    """
    problem = ProblemDetail(
        type=exc.problem_type,
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        instance=_instance(),
    )

    headers = {}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC 9457 Problem Details format.

    Returns application/problem+json with top-level RFC 9457 fields.
    No {"detail": ...} wrapper; dict details are preserved.
    """
    detail_value = exc.detail if exc.detail is not None else _get_title_for_status(exc.status_code)

    problem = ProblemDetail(
        type=f"https://tally.dev/problems/http-{exc.status_code}",
        title=_get_title_for_status(exc.status_code),
        status=exc.status_code,
        detail=detail_value,
        instance=_instance(),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with RFC 9457 Problem Details format.

    Returns 422 Unprocessable Entity with application/problem+json.
    """
    # Extract first error for detail message
    first_error = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    problem = ProblemDetail(
        type="https://tally.dev/problems/validation-error",
        title="Request Validation Failed",
        status=422,
        detail=f"Invalid field '{field}': {msg}",
        instance=_instance(),
    )

    return JSONResponse(
        status_code=422,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with RFC 9457 Problem Details format.

    Returns 500 Internal Server Error with application/problem+json.
    """
    problem = ProblemDetail(
        type="https://tally.dev/problems/internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_instance(),
    )

    logging.getLogger(__name__).error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        410: "Gone",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(organization.router)
app.include_router(invites.router)
app.include_router(projects.router)
app.include_router(time_entries.router)
app.include_router(recurring.router)
app.include_router(templates.router)
app.include_router(favorites.router)
app.include_router(reports.router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "Tally API",
        "version": API_VERSION,
        "status": "running",
        "docs": "/api-docs",
    }
