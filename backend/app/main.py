"""
FastAPI main application entry point.
Registers all routes, middleware and the error envelope handlers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
import logging

from shared_config import settings
from backend.app.db.redis_client import close_async_redis
from backend.app.errors import AppError, ErrorKind, STATUS_BY_KIND
from backend.app.routes import analytics, events, forms, submissions

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_async_redis()


# ── App Setup ─────────────────────────────────────────────────────

app = FastAPI(
    title="Form Analytics API",
    description="Multi-step forms: public tracking and submissions, funnel and conversion analytics.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting: one budget per client address for every /api route
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# ── Register Routes ───────────────────────────────────────────────

app.include_router(analytics.router)
app.include_router(events.router)
app.include_router(submissions.router)
app.include_router(forms.router)


# ── Error Envelope ────────────────────────────────────────────────

def _error_response(kind: ErrorKind, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND[kind],
        content={"data": None, "error": AppError(kind, message, details).to_dict()},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.kind.name}: {exc.message}")
    return _error_response(exc.kind, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    return _error_response(ErrorKind.VALIDATION, "Invalid request", details)


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    # plain def: SlowAPIMiddleware calls the registered handler without awaiting it
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}")
    return _error_response(ErrorKind.RATE_LIMITED, "Too many requests, try again later")


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = "An internal error occurred" if settings.APP_ENV == "production" else str(exc)
    return _error_response(ErrorKind.INTERNAL, message)


# ── Health Check ──────────────────────────────────────────────────

@app.get("/health")
@limiter.exempt
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/")
@limiter.exempt
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Form Analytics API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=settings.FASTAPI_PORT, reload=True)
