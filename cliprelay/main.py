"""
FastAPI application: relay, storage and model routes under /api.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cliprelay.config import get_settings
from cliprelay.db.engine import init_db
from cliprelay.deps import get_storage
from cliprelay.llm import ModelCallError, ModelUnavailable
from cliprelay.routers import ai, relay, storage
from cliprelay.services.pipeline import ImageValidationError
from cliprelay.tasks.schedule import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("cliprelay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting cliprelay")

    init_db()
    logger.info("Storage backend: %s", get_storage().backend)

    scheduler = start_scheduler()

    yield

    stop_scheduler(scheduler)
    logger.info("cliprelay stopped")


app = FastAPI(
    title="cliprelay",
    version="0.1.0",
    description="Phone/desktop clipboard relay with per-user storage and LLM note tools",
    lifespan=lifespan,
)

# Phone clients call the API directly from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials="*" not in settings.ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(relay.router, prefix="/api")
app.include_router(storage.router, prefix="/api")
app.include_router(ai.router, prefix="/api")


# === Error handlers ===

@app.exception_handler(ModelUnavailable)
async def model_unavailable_handler(request: Request, exc: ModelUnavailable):
    return JSONResponse(
        status_code=503,
        content={"error": "Model unavailable", "detail": str(exc)},
    )


@app.exception_handler(ModelCallError)
async def model_call_error_handler(request: Request, exc: ModelCallError):
    return JSONResponse(
        status_code=502,
        content={"error": "Model call failed", "detail": str(exc)},
    )


@app.exception_handler(ImageValidationError)
async def image_validation_handler(request: Request, exc: ImageValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid image request", "detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if app.debug else "An unexpected error occurred",
        },
    )


@app.get("/")
def root():
    return {"service": "cliprelay", "health": "/api/health"}
