import sys
import asyncio
import logging
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi.errors import RateLimitExceeded
from insightboard.api.routes import router, limiter
from insightboard.api.metrics import router as metrics_router
from insightboard.core.config import get_settings
from insightboard.core.errors import ErrorCodes, get_error_response
from insightboard.core.logging import configure_logging
from insightboard.core.middleware import CorrelationIDMiddleware

# Load environment variables
load_dotenv()

# Load and validate configuration
try:
    settings = get_settings()
except Exception as e:
    logging.basicConfig(level=logging.ERROR)
    logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="InsightBoard API",
    description="Upload tabular data, get charts, insights and data chat",
    version="1.0.0"
)

app.state.limiter = limiter
app.state.settings = settings


def _error_json(request: Request, status_code: int, code: str, headers=None) -> JSONResponse:
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    error_info = get_error_response(code)
    error_info['correlation_id'] = correlation_id
    return JSONResponse(
        status_code=status_code,
        content={"detail": error_info},
        headers={"X-Correlation-ID": correlation_id, **(headers or {})}
    )


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded with structured error response."""
    return _error_json(request, 429, ErrorCodes.RATE_LIMIT_EXCEEDED, {"Retry-After": "60"})


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)


class TimeoutMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        timeout = settings.request_timeout_seconds
        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Request timeout after {timeout} seconds: {request.url.path}")
            return _error_json(request, 504, ErrorCodes.TIMEOUT)


# Middleware: last added runs first
app.add_middleware(TimeoutMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"]
)
app.add_middleware(CorrelationIDMiddleware)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "InsightBoard API is running"}
