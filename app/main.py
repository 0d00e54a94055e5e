"""
Main FastAPI application entry point.
Configures the application, middleware, and routes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, SQLModel

from app.api.routes import auth, health, users
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.db.session import engine
from app.models.user import UserRole
from app.schemas.user import UserCreate
from app.services.user_service import UserService
from app.ui import routes as ui_routes

setup_logging()
logger = get_logger(__name__)


def bootstrap_superuser() -> None:
    """Create the configured first admin if no account uses its email yet."""
    with Session(engine) as session:
        if UserService.get_by_email(session, settings.FIRST_SUPERUSER_EMAIL):
            return

        logger.info("Creating first superuser...")
        try:
            superuser = UserCreate(
                email=settings.FIRST_SUPERUSER_EMAIL,
                password=settings.FIRST_SUPERUSER_PASSWORD,
                name="Admin User",
            )
            UserService.create(session, superuser, role=UserRole.ADMIN)
            logger.info(f"Superuser created: {settings.FIRST_SUPERUSER_EMAIL}")
        except Exception as e:
            logger.error(f"Failed to create superuser: {e}")
            logger.warning("Continuing without superuser. Admin endpoints will be unreachable.")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Runs startup and shutdown logic.
    """
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")

    logger.info("Creating database tables...")
    SQLModel.metadata.create_all(engine)

    if not settings.DISABLE_BOOTSTRAP_USERS:
        bootstrap_superuser()
    else:
        logger.info("User bootstrapping disabled (DISABLE_BOOTSTRAP_USERS=true)")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "content-type", "accept"],
    )

app.include_router(ui_routes.router, tags=["UI"])

app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(users.router, prefix=settings.API_PREFIX)


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
