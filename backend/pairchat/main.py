"""pairchat backend application.

This is the main entry point for the pairchat service, a real-time
one-to-one messaging relay.

Modules:
    - chat: WebSocket gateway (sessions, presence, routing, read receipts)
    - messages: DuckDB message storage
    - users: DuckDB user directory and roster
    - auth: JWT bearer token verification
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from pairchat.auth.service import TokenService
from pairchat.chat.gateway import ChatGateway
from pairchat.chat.registry import SessionRegistry
from pairchat.chat.router import router as chat_router
from pairchat.config import AppSettings, get_config
from pairchat.messages.service import MessageStore
from pairchat.users.router import router as users_router
from pairchat.users.service import UserDirectory

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# uvicorn.access logs every handshake; httpx/httpcore log every request
# made by the test client.
for _noisy in (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "websockets",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppSettings = app.state.settings

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in pairchat.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    message_store = MessageStore(db_path=config.storage.messages_db_path)
    directory = UserDirectory(message_store, db_path=config.storage.users_db_path)
    token_service = TokenService(
        secret_key=config.secrets.jwt.secret_key,
        algorithm=config.secrets.jwt.algorithm,
        expire_minutes=config.auth.token_expire_minutes,
    )
    registry = SessionRegistry()

    app.state.message_store = message_store
    app.state.directory = directory
    app.state.token_service = token_service
    app.state.registry = registry
    app.state.gateway = ChatGateway(
        registry=registry,
        tokens=token_service,
        store=message_store,
        directory=directory,
        max_content_length=config.chat.max_content_length,
    )
    logger.info(
        "Chat gateway ready (messages=%s, users=%s)",
        config.storage.messages_db_path,
        config.storage.users_db_path,
    )

    yield  # Application runs here

    # Shutdown
    directory.close()
    message_store.close()
    logger.info("Application shutdown complete")


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to run with. Defaults to get_config().
    """
    application = FastAPI(
        title="pairchat API",
        description="Real-time one-to-one messaging relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.settings = settings or get_config()

    # Register all routers
    application.include_router(chat_router)
    application.include_router(users_router)

    @application.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object with the number of live connections.
        """
        registry = getattr(application.state, "registry", None)
        return {"status": "ok", "connections": len(registry) if registry is not None else 0}

    return application


app = create_app()
