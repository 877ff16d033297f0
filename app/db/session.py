# /app/db/session.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import text
from app.core.config import settings
from app.core.exceptions import ServiceUnavailable
import asyncio
import logging

logger = logging.getLogger(__name__)

_connect_args = {}
if settings.SQLALCHEMY_DATABASE_URI.startswith("postgresql+asyncpg"):
    _connect_args = {
        "server_settings": {"application_name": "natours"},
        "command_timeout": settings.STORE_TIMEOUT_SECONDS,
    }

engine = create_async_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    echo=False,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

AsyncSessionLocal = async_sessionmaker(
    engine, expire_on_commit=False, class_=AsyncSession
)


async def run_with_timeout(awaitable, timeout: float = None):
    """Awaits a store call, failing with 503 instead of hanging past the store timeout"""
    timeout = timeout or settings.STORE_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        logger.error(f"Store call exceeded {timeout}s")
        raise ServiceUnavailable()


async def get_db():
    db = AsyncSessionLocal()
    try:
        retry_count = 3
        retry_delay = 1  # seconds

        for attempt in range(retry_count):
            try:
                await db.execute(text("SELECT 1"))
                break
            except Exception as e:
                logger.warning(f"Database connection attempt {attempt + 1}/{retry_count} failed: {str(e)}")
                if attempt == retry_count - 1:
                    logger.error(f"All {retry_count} connection attempts failed")
                    raise ServiceUnavailable("Database is unavailable. Please try again later.")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff

        yield db
    finally:
        await db.close()
