"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms_backend.core.config import settings
from lms_backend.core.deps import RequestContext, optional_auth
from lms_backend.core.middleware import setup_middleware
from lms_backend.core.exceptions import LMSPlatformError
from lms_backend.core.security import get_token_codec

from lms_backend.api.auth import router as auth_router
from lms_backend.api.users import router as users_router
from lms_backend.api.roles import router as roles_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("lms_platform")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s (%s)", settings.APP_NAME, settings.ENV)
    # Refuse to serve without signing secrets
    get_token_codec()
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="LMS Platform API",
    description="Authentication and user hierarchy for the LMS",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(LMSPlatformError)
async def lms_exception_handler(request: Request, exc: LMSPlatformError):
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid input",
            "message": "Request validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": HTTPStatus(exc.status_code).phrase, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s [%s]",
        request.method, request.url.path, getattr(request.state, "request_id", "-"),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred",
        },
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(roles_router, prefix="/api")


@app.get("/")
async def root(context: RequestContext = Depends(optional_auth)):
    info = {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
        "authenticated": context.is_authenticated,
    }
    if context.is_authenticated:
        info["userId"] = context.claims.user_id
    return info


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
