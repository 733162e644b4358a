import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from article_comments.cache import cache
from article_comments.config import settings
from article_comments.database import build_engine, build_session_factory
from article_comments.errors import CommentError
from article_comments.middleware import TimingMiddleware
from article_comments.routers import comments, metrics

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # SQL echo is controlled by DEBUG on the engine, not by the root level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.LOG_LEVEL)
    engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()
    await engine.dispose()


def _error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "type": error_type},
    )


async def comment_error_handler(_: Request, exc: CommentError) -> JSONResponse:
    return _error_response(exc.status_code, str(exc), exc.error_type)


async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0]["msg"] if errors else "Invalid request"
    return _error_response(422, f"Invalid request: {detail}", "validation_failed")


async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error: %s", exc)
    return _error_response(500, "We are not able to process this request", "internal_error")


app = FastAPI(
    title="Article Comments API",
    description="Threaded, paginated comments for published articles",
    version="1.0.0",
    lifespan=lifespan,
)

# Error handlers
app.add_exception_handler(CommentError, comment_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unexpected_error_handler)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(comments.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
