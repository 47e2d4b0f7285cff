"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnpath.api.routes import analytics, roadmaps
from learnpath.core.config import get_settings
from learnpath.core.database import close_db, init_db
from learnpath.core.exceptions import (
    InputValidationError,
    LearnPathError,
    NotFoundError,
    OwnershipError,
)
from learnpath.core.logging import configure_logging, get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    configure_logging(debug=settings.DEBUG)
    logger.info(
        "Starting LearnPath",
        version=settings.APP_VERSION,
        env=settings.ENV,
        debug=settings.DEBUG,
    )
    await init_db()
    yield
    # Shutdown
    logger.info("Shutting down LearnPath")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Learning-path progress and assessment tracking",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: LearnPathError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, OwnershipError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, InputValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_503_SERVICE_UNAVAILABLE


@app.exception_handler(LearnPathError)
async def learnpath_error_handler(request: Request, exc: LearnPathError) -> JSONResponse:
    """Translate domain errors into HTTP responses."""
    code = _status_for(exc)
    logger.info("Request rejected", path=request.url.path, status=code, **exc.to_dict())
    return JSONResponse(status_code=code, content={"detail": exc.message, **exc.to_dict()})


app.include_router(roadmaps.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "env": settings.ENV,
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
