from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
import os

from marketplace.api.api_v1.api import api_router as api_v1_router
from marketplace.core.config import settings
from marketplace.core.deps import close_redis
from marketplace.core.errors import register_exception_handlers
from marketplace.core.rate_limit import limiter, rate_limit_exceeded_handler
from marketplace.core.logging_config import setup_logging, get_logger, request_id_var
from marketplace.services.scheduler import init_scheduler, shutdown_scheduler
from marketplace.db.session import SessionLocal, close_engine
from marketplace.db.init_db import ensure_tables_exist, ensure_admin_user

log_level = os.getenv("LOG_LEVEL", "INFO")
log_to_file = os.getenv("LOG_TO_FILE", "true").lower() == "true"
setup_logging(log_level, log_dir=os.getenv("LOG_DIR", "logs") if log_to_file else None)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown"""
    logger.info("Starting up...")

    try:
        await ensure_tables_exist()
        logger.info("Database tables ready")
    except Exception as e:
        logger.warning(f"Table initialisation warning: {e}")

    try:
        async with SessionLocal() as db:
            await ensure_admin_user(db)
    except Exception as e:
        logger.warning(f"Admin seed skipped: {e}")

    init_scheduler()
    yield
    logger.info("Shutting down...")
    shutdown_scheduler()
    await close_redis()
    await close_engine()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="Multi-tenant marketplace API",
    lifespan=lifespan
)

if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"CORS origins: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_exception_handlers(app)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.middleware("http")
async def tag_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


logger.info(f"Registering API v1 routes under {settings.API_V1_STR}")
app.include_router(api_v1_router, prefix=settings.API_V1_STR)

# Uploaded product images
app.mount("/media", StaticFiles(directory=settings.MEDIA_DIR, check_dir=False), name="media")


@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} API", "docs": "/docs"}


@app.get("/health")
async def health():
    return {"status": "ok"}
