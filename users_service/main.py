from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from users_service.base_microservice import BaseMicroservice, create_engine_from_url, create_session_factory
from users_service.config import Settings, get_settings
from users_service.event_handler.broker import Broker, DatabaseBroker
from users_service.event_handler.router import router as event_router
from users_service.users.directory import UserDirectory
from users_service.users.exception_handlers import setup_exception_handlers
from users_service.users.passwords import PasswordHasher
from users_service.users.repository import SQLAlchemyUserRepository, UserRepository
from users_service.users.router import router as users_router, start_users_service
from users_service.users.tokens import TokenService
from users_service.users.users import UserService

# Create shared base microservice instance
base_service = BaseMicroservice()


def build_user_service(settings: Settings, repository: UserRepository, broker: Broker) -> UserService:
    """Wire a UserService from settings and its storage/event collaborators."""
    tokens = TokenService(
        secret_key=settings.jwt_secret_key,
        ttl=settings.access_token_ttl,
        issuer=settings.token_issuer,
    )
    return UserService(
        directory=UserDirectory(repository),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        broker=broker,
        topic=settings.user_created_topic,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Builds the users service from the environment unless one was injected.
    """
    engine = None
    if getattr(app.state, "user_service", None) is None:
        settings = get_settings()
        logging.getLogger().setLevel(settings.log_level.upper())

        engine = create_engine_from_url(settings.database_url)
        session_factory = create_session_factory(engine)
        await start_users_service(engine)

        broker = DatabaseBroker(session_factory)
        app.state.broker = broker
        app.state.user_service = build_user_service(settings, SQLAlchemyUserRepository(session_factory), broker)

    base_service.log_event("service.startup", {"service": "main"})
    try:
        yield
    finally:
        base_service.log_event("service.shutdown", {"service": "main"})
        if engine is not None:
            await engine.dispose()


def create_app(user_service: Optional[UserService] = None, broker: Optional[Broker] = None) -> FastAPI:
    app = FastAPI(
        title="Users API",
        description="User accounts, authentication and token validation",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if user_service is not None:
        app.state.user_service = user_service
        app.state.broker = broker or user_service.broker

    # Include routers with prefixes
    app.include_router(users_router, prefix="/users", tags=["users"])
    app.include_router(event_router, prefix="/events", tags=["events"])
    setup_exception_handlers(app)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint returning API information."""
        return {
            "name": "Users API",
            "version": "0.1.0",
            "services": ["users", "events"],
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """Overall system health check."""
        return {
            "status": "ok",
            "services": {
                "users": "online",
                "events": "online",
            },
        }

    return app


app = create_app()

# For running directly with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("users_service.main:app", host="0.0.0.0", port=8000, reload=True)
