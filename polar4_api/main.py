from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import create_engine
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware

from . import __version__
from .config import Settings
from .errors import BackendFault, InputFormatError, LoadError, NotFoundError
from .loader import load_table
from .models import ApiInfo, ErrorResponse, HealthResponse, LookupResponse, ReadyResponse
from .rules import POLAR_DESCRIPTIONS
from .service import lookup_postcode
from .state import LoadState, ServiceState
from .tables import InMemoryTable, LookupTable, SqlTable

logger = logging.getLogger(__name__)

DEFAULT_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


def _error(status_code: int, **fields) -> JSONResponse:
    body = ErrorResponse(**fields).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _api_info(endpoints: dict) -> ApiInfo:
    return ApiInfo(
        version=__version__,
        endpoints=endpoints,
        example={
            "request": "GET /postcode/AB101AA",
            "response": {
                "success": True,
                "postcode": "AB10 1AA",
                "polar4": 2,
                "polar_description": POLAR_DESCRIPTIONS[2],
            },
        },
    )


def _install_common(app: FastAPI, settings: Settings) -> None:
    """Middleware and error handlers shared by both deployment forms."""
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit}/minute"],
    )
    app.state.limiter = limiter
    app.state.settings = settings

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    security_headers = dict(DEFAULT_SECURITY_HEADERS)
    if settings.is_production:
        security_headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in security_headers.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = (time.perf_counter() - start) * 1000
            logger.info("%s %s %d %.0fms", request.method, request.url.path, status_code, duration)

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_exceeded(request: Request, exc: RateLimitExceeded):
        return _error(
            429,
            error="Too many requests, please try again later.",
            retryAfter="1 minute",
        )

    @app.exception_handler(InputFormatError)
    async def invalid_format(request: Request, exc: InputFormatError):
        return _error(400, error="Invalid postcode format", message=str(exc))

    @app.exception_handler(NotFoundError)
    async def postcode_not_found(request: Request, exc: NotFoundError):
        return _error(404, error="Postcode not found", searched=exc.searched)

    @app.exception_handler(BackendFault)
    async def backend_fault(request: Request, exc: BackendFault):
        return _error(500, error="Internal server error")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        # Known path with another method is reported like an unknown route.
        if exc.status_code in (404, 405):
            return _error(
                404,
                error="Not Found",
                message=f"Endpoint {request.method} {request.url.path} does not exist",
            )
        return _error(exc.status_code, error=str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        message = "An unexpected error occurred" if settings.is_production else str(exc)
        return _error(500, error="Internal Server Error", message=message)


def create_server_app(
    settings: Optional[Settings] = None,
    loader: Callable[[str], InMemoryTable] = load_table,
) -> FastAPI:
    """
    In-memory variant: the CSV is loaded once during startup.

    A LoadError propagates out of the lifespan, so the ASGI server aborts
    startup instead of serving an empty table.
    """
    settings = settings or Settings.from_env()
    state = ServiceState()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        table = await run_in_threadpool(state.load, lambda: loader(settings.csv_path))
        logger.info("Postcode POLAR4 API ready (%s, %d postcodes loaded)", settings.environment, len(table))
        yield
        logger.info("Shutting down")

    app = FastAPI(
        title="polar4-api",
        description="Lookup POLAR4 participation quintiles by UK postcode",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = state
    _install_common(app, settings)

    @app.get("/ready", response_model=ReadyResponse, response_model_exclude_none=True)
    def ready():
        if state.state is LoadState.READY:
            return {"status": "ready", "postcodes_loaded": state.postcodes_loaded}
        if state.state is LoadState.FAILED:
            return JSONResponse(status_code=503, content={"status": "failed", "message": state.error})
        return JSONResponse(status_code=503, content={"status": "loading", "message": "Data is still loading"})

    @app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
    def health():
        return HealthResponse(
            timestamp=_now(),
            environment=settings.environment,
            uptime=round(state.uptime(), 3),
            postcodes_loaded=state.postcodes_loaded,
        )

    @app.get("/postcode/{postcode}", response_model=LookupResponse)
    def get_postcode(postcode: str):
        table = state.table
        if table is None:
            return JSONResponse(
                status_code=503,
                content={"success": False, "error": "Service not ready", "message": "Data is still loading"},
            )
        return lookup_postcode(table, postcode)

    @app.get("/", response_model=ApiInfo)
    def root():
        return _api_info(
            {"lookup": "GET /postcode/:postcode", "health": "GET /health", "ready": "GET /ready"}
        )

    return app


def create_edge_app(settings: Optional[Settings] = None, table: Optional[LookupTable] = None) -> FastAPI:
    """
    Stateless variant: every lookup is a single query against DATABASE_URL.

    There is no load phase and no /ready endpoint.
    """
    settings = settings or Settings.from_env()
    if table is None:
        if not settings.database_url:
            raise LoadError("DATABASE_URL is required for the edge handler")
        table = SqlTable(create_engine(settings.database_url, pool_pre_ping=True))

    app = FastAPI(
        title="polar4-api",
        description="Lookup POLAR4 participation quintiles by UK postcode",
        version=__version__,
    )
    _install_common(app, settings)

    @app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
    def health():
        return HealthResponse(timestamp=_now(), environment=settings.environment, runtime="edge")

    @app.get("/postcode/{postcode}", response_model=LookupResponse)
    def get_postcode(postcode: str):
        return lookup_postcode(table, postcode)

    @app.get("/", response_model=ApiInfo)
    def root():
        return _api_info({"lookup": "GET /postcode/:postcode", "health": "GET /health"})

    return app
