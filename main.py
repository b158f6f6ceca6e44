from fastapi import FastAPI, Request, status, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from contextlib import asynccontextmanager
import uvicorn
import traceback
import logging
import os

from config import settings
from database import engine

# Import API routers
from app.api.endpoints import billing, reports
from app.services.billing_errors import LedgerError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Get CORS origins from environment variable
def get_cors_origins():
    """Get CORS origins from settings or use defaults"""
    cors_env = settings.BACKEND_CORS_ORIGINS
    if cors_env:
        # Split by comma and strip whitespace
        return [origin.strip() for origin in cors_env.split(",") if origin.strip()]
    # Default origins for development
    return [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


def cors_headers(request: Request) -> dict:
    """CORS headers for error responses, which bypass CORSMiddleware"""
    origin = request.headers.get("origin")
    if not origin:
        return {}

    is_allowed = origin in get_cors_origins()
    if not is_allowed and settings.ENVIRONMENT == "development":
        # In development, allow localhost origins
        is_allowed = origin.startswith("http://localhost:") or origin.startswith("http://127.0.0.1:")

    if not is_allowed:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting up ({settings.ENVIRONMENT})")
    yield
    await engine.dispose()
    logger.info(f"{settings.APP_NAME} shutting down")

# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Dental clinic billing ledger: invoices, payments, plans, adjustments and financial reports",
    version=settings.APP_VERSION,
    lifespan=lifespan
)
# Configure CORS FIRST so headers are present even on errors
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1):\d+" if settings.ENVIRONMENT == "development" else None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Typed ledger failures map to their own status codes"""
    logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=cors_headers(request)
    )


# Exception handler for HTTPException to ensure CORS headers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTPException with CORS headers"""
    headers = cors_headers(request)
    # Merge with any existing headers from the exception
    if getattr(exc, "headers", None):
        headers.update(exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with CORS headers"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors(), custom_encoder={Exception: str})},
        headers=cors_headers(request)
    )


# Global exception handler to ensure CORS headers are always present
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and answer 500"""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)

    # In development, include traceback
    if settings.ENVIRONMENT == "development":
        traceback_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": str(exc),
                "type": type(exc).__name__,
                "traceback": traceback_str.split("\n"),
            },
            headers=cors_headers(request)
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
        headers=cors_headers(request)
    )

# Include API routers with versioning
# API Version 1 - All endpoints under /api/v1
app.include_router(billing.router, prefix=f"{settings.API_V1_PREFIX}/billing", tags=["Billing"])
app.include_router(reports.router, prefix=f"{settings.API_V1_PREFIX}/billing", tags=["Reports"])


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/api/health")
async def health_check():
    """Detailed health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=os.getenv("ENVIRONMENT", "development") == "development"
    )
