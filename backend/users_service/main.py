import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from users_service.core.config import settings
from users_service.core.database import engine, Base, SessionLocal
from users_service.api.exception_handlers import register_exception_handlers
from users_service.api.routes import users
from users_service.services.user_service import user_service

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def bootstrap_admin() -> None:
    """Create the configured first Admin account if it does not exist yet"""
    if not (settings.BOOTSTRAP_ADMIN_USERNAME and settings.BOOTSTRAP_ADMIN_PASSWORD):
        return
    db = SessionLocal()
    try:
        user_service.ensure_bootstrap_admin(
            settings.BOOTSTRAP_ADMIN_USERNAME,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
            db,
            email=settings.BOOTSTRAP_ADMIN_EMAIL,
        )
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables and the bootstrap admin.

    In production, use migrations (Alembic) instead of create_all.
    """
    if settings.uses_insecure_secret():
        logger.warning("SECRET_KEY is the built-in default; set a real secret before deploying")
    Base.metadata.create_all(bind=engine)
    bootstrap_admin()
    yield


app = FastAPI(
    title="Users Service API",
    description="User accounts with bearer-token authentication and role-based access",
    version="1.0.0",
    lifespan=lifespan
)

# CORS preflight (OPTIONS) requests are answered here and never reach the auth gate
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.get_cors_methods(),
    allow_headers=settings.get_cors_headers(),
    expose_headers=settings.get_cors_expose_headers(),
    max_age=settings.CORS_MAX_AGE,
)

register_exception_handlers(app)

# All routes are prefixed with /api
app.include_router(users.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {"message": "Users Service is running", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return {"status": "healthy"}
