"""FastAPI application: wiring, request tracing and error mapping."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from codialog import __version__
from codialog.api import routes as routes_module
from codialog.api.routes import all_routers, error_response
from codialog.config import settings
from codialog.core.pipeline import create_pipeline
from codialog.utils.logging import configure_logging, execution_context, get_logger

configure_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared pipeline unless a test or caller already installed one."""
    if routes_module.pipeline is None:
        routes_module.pipeline = create_pipeline()

    current = routes_module.pipeline
    logger.info(
        "Codialog API ready",
        version=__version__,
        runner=current.supervisor.runner_command,
        browser=current.supervisor.browser_target,
        fallback_available=bool(current.fallback and current.fallback.available)
    )
    yield
    logger.info("Codialog API stopped", running_sessions=current.supervisor.running_sessions())


def create_app() -> FastAPI:
    app = FastAPI(
        title="Codialog API",
        description="Compiles web forms into automation scripts and supervises their execution",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.middleware("http")(trace_request)
    register_error_handlers(app)

    for router in all_routers:
        app.include_router(router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "name": "Codialog API",
            "version": __version__,
            "status": "running",
            "docs": "/docs" if settings.debug else "disabled"
        }

    return app


async def trace_request(request: Request, call_next):
    """Tag every log event of a request with its id and echo the id back to the client."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    started = time.perf_counter()

    with execution_context(request_id=request_id, method=request.method, path=request.url.path):
        logger.info("Request received", client_ip=request.client.host if request.client else None)
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request aborted",
                error=str(e),
                duration_seconds=round(time.perf_counter() - started, 4)
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "Request handled",
            status_code=response.status_code,
            duration_seconds=round(time.perf_counter() - started, 4)
        )
        return response


def register_error_handlers(app: FastAPI) -> None:
    """Map every failure onto the ErrorResponse body."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        # Router 404/405s arrive as the Starlette class, route code raises FastAPI's subclass
        error = "HTTPException" if type(exc) is not StarletteHTTPException else "StarletteHTTPException"
        logger.warning("HTTP error", status_code=exc.status_code, detail=exc.detail, url=str(request.url))
        return error_response(exc.status_code, error, str(exc.detail or "Request could not be routed"))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        problems = jsonable_errors(exc)
        logger.warning("Request validation failed", errors=problems, url=str(request.url))
        return error_response(
            422,
            "ValidationError",
            "Request validation failed",
            {"validation_errors": problems}
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception", error_type=type(exc).__name__, url=str(request.url))
        return error_response(
            500,
            "InternalServerError",
            "An unexpected error occurred",
            {"error_type": type(exc).__name__} if settings.debug else None
        )


def jsonable_errors(exc: RequestValidationError):
    # Error contexts may hold exception instances
    return [
        {key: value for key, value in error.items() if key in ("loc", "msg", "type")}
        for error in exc.errors()
    ]


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "codialog.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None
    )
