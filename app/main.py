"""
One FastAPI application per service. Run each separately, e.g.:

    uvicorn app.main:user_app --port 3001
    uvicorn app.main:deck_app --port 3002
    uvicorn app.main:study_app --port 3003
    uvicorn app.main:sharing_app --port 3004
"""
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import Base, engine
from app.errors import register_exception_handlers
from app.auth.routes import router as users_router
from app.cards.routes import router as decks_router
from app.study.routes import router as study_router
from app.sharing.routes import router as sharing_router

# Import models so SQLAlchemy can create tables
from app.users.models import User
from app.cards.models import Card, Deck
from app.sharing.models import DeckShare
from app.study.models import Mastery, StudyAttempt, StudySession

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_service(name: str, router: APIRouter) -> FastAPI:
    """Build a service app around one router with the shared error envelope and CORS policy."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info(f"[BOOT] {name} service (user service at {settings.USER_SERVICE_URL})")
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {e}")
            # Don't crash the app - let it start and handle errors per-request
        yield
        logger.info(f"{name} service shutting down")

    app = FastAPI(
        title=f"Study Buddy {name} service",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


user_app = create_service("User", users_router)
deck_app = create_service("Deck", decks_router)
study_app = create_service("Study", study_router)
sharing_app = create_service("Sharing", sharing_router)
