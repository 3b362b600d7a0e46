# app/core/redis_client.py
import redis.asyncio as redis # Используем async версию клиента
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

# Глобальный пул соединений (рекомендуется для асинхронных приложений)
redis_pool = None

def create_redis_pool():
    """Создает пул соединений Redis. Вызывается при старте."""
    global redis_pool
    if redis_pool is None:
        if not settings.redis_url:
            logger.warning("REDIS_URL is not set. Rate limiting of shared galleries is disabled.")
            return None
        try:
            logger.info(f"Creating Redis connection pool for URL: {settings.redis_url}")
            redis_pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                health_check_interval=30
            )
        except (redis.RedisError, ValueError) as e:
            logger.error(f"Failed to create Redis connection pool: {e}", exc_info=True)
            redis_pool = None
    return redis_pool

async def close_redis_pool():
    """Закрывает пул соединений Redis. Вызывается при остановке."""
    global redis_pool
    if redis_pool:
        logger.info("Closing Redis connection pool.")
        try:
            await redis_pool.disconnect(inuse_connections=True)
        except redis.RedisError as e:
            logger.error(f"Error closing Redis connection pool: {e}", exc_info=True)
        finally:
            redis_pool = None

async def get_redis_client() -> AsyncGenerator[Optional[redis.Redis], None]:
    """
    FastAPI зависимость для получения асинхронного клиента Redis из пула.
    Отдает None, если Redis не настроен или недоступен: rate limiter
    в этом случае пропускает запрос (fail open).
    """
    pool = redis_pool or create_redis_pool()
    if pool is None:
        yield None
        return

    client = redis.Redis(connection_pool=pool)
    try:
        await client.ping() # Проверяем соединение
    except redis.RedisError as e:
        logger.error(f"Redis unavailable, skipping rate limiting: {e}")
        yield None
        return
    yield client


@asynccontextmanager
async def lifespan(app):
    logger.info("Application startup: initializing database and Redis pool...")
    from app.core.database import init_db, backfill_video_titles
    init_db()
    backfill_video_titles()
    create_redis_pool()
    logger.info("Initialization complete.")
    yield
    logger.info("Application shutdown: closing Redis pool...")
    await close_redis_pool()
