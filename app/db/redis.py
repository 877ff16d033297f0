# /app/db/redis.py
from redis.asyncio import Redis
from app.core.config import settings
from app.core.exceptions import ServiceUnavailable
import logging
import asyncio

logger = logging.getLogger(__name__)


async def get_redis():
    """Yields a Redis client as a FastAPI dependency, or None in development when Redis is down"""
    max_retries = 3
    retry_delay = 1  # seconds

    redis = None

    for attempt in range(max_retries):
        try:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
            break
        except Exception as e:
            if redis:
                await redis.close()
                redis = None

            if attempt < max_retries - 1:
                logger.warning(
                    f"Redis connection attempt {attempt + 1} failed: {str(e)}. Retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(f"Redis connection failed after {max_retries} attempts: {str(e)}")

    if not redis:
        if not settings.is_production:
            logger.warning("Continuing without Redis in development mode. Rate limiting is disabled.")
            yield None
            return
        raise ServiceUnavailable()

    try:
        yield redis
    finally:
        await redis.close()
