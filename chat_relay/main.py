from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.cache import CacheManager
from .core.config import settings
from .core.database import close_db_connections, create_tables
from .core.error_handlers import (
    chat_relay_exception_handler, general_exception_handler, request_validation_exception_handler
)
from .core.exceptions import ChatRelayException
from .core.logging import setup_logging
from .routers import health
from .routers.chat import chat_router, websocket_router
from .services.auth.authorization import build_policy
from .services.chat.room_broadcaster import RoomBroadcaster
from .services.chat.subscription_manager import SubscriptionManager
from .services.chat.websocket_manager import WebSocketManager

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Chat Relay in {settings.environment} mode")

    if settings.auto_create_tables:
        await create_tables()

    # One connection registry per process, shared by broadcaster and subscriptions
    websocket_manager = WebSocketManager(queue_size=settings.connection_queue_size)
    app.state.websocket_manager = websocket_manager
    app.state.broadcaster = RoomBroadcaster(websocket_manager)
    app.state.subscriptions = SubscriptionManager(websocket_manager)
    app.state.policy = build_policy(settings)
    app.state.cache = CacheManager(settings.redis_url, settings.cache_ttl_seconds) if settings.cache_enabled else None
    logger.info("Real-time transport initialized")

    yield

    logger.info("Shutting down Chat Relay")
    await websocket_manager.close()
    await app.state.policy.close()
    if app.state.cache is not None:
        await app.state.cache.disconnect()
    await close_db_connections()
    logger.info("Shutdown complete")

app = FastAPI(
    title="Chat Relay API",
    description="Context-scoped chat messages with real-time room broadcast",
    version=settings.app_version,
    lifespan=lifespan
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

app.add_exception_handler(ChatRelayException, chat_relay_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health.router)
app.include_router(chat_router)
app.include_router(websocket_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
