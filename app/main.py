import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.cache import cache
from app.config import settings
from app.errors import register_error_handlers
from app.middleware import TimingMiddleware
from app.routers import auth, metrics, users

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the API works without Redis, only the user cache is lost.
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable at startup: %s", exc)
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Blog API - Auth",
    description="Registration, login and rotating refresh-token sessions for the blog platform",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers, registered explicitly
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(metrics.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
