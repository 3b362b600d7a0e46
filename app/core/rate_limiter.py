# app/core/rate_limiter.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
import redis.asyncio as redis # Используем async клиент

from app.core.config import settings
from app.core.redis_client import get_redis_client # Наша зависимость Redis

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "rate_limit:client"
RATE_LIMIT_ACTION = "shared_gallery"


def trusted_proxies() -> set:
    return {p.strip() for p in settings.trusted_proxies.split(",") if p.strip()}


def client_address(request: Request) -> str:
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    # Заголовок от клиента напрямую игнорируем, иначе лимит обходится подменой
    if forwarded and peer in trusted_proxies():
        return forwarded.split(",")[0].strip()
    return peer


async def rate_limit_shared_gallery(
    request: Request,
    redis_client: Optional[redis.Redis] = Depends(get_redis_client)
):
    """
    FastAPI зависимость, ограничивающая частоту чтения публичных галерей
    с одного адреса, чтобы перебор share token был дорогим.
    При недоступном Redis запрос пропускается ("fail open").
    """
    if redis_client is None:
        return True

    limit = settings.shared_rate_limit_count
    window = settings.shared_rate_limit_window_seconds
    address = client_address(request)
    key = f"{RATE_LIMIT_KEY_PREFIX}:{address}:{RATE_LIMIT_ACTION}"

    try:
        # 1. Атомарно увеличиваем счетчик
        current_count = await redis_client.incr(key)

        # 2. Первый запрос в окне: устанавливаем время жизни ключа
        if current_count == 1:
            await redis_client.expire(key, window)

        # 3. Проверяем лимит
        if current_count > limit:
            final_ttl = await redis_client.ttl(key)
            retry_after = final_ttl if final_ttl > 0 else window
            logger.warning(f"Rate limit exceeded for {address} (shared gallery). Count: {current_count}/{limit}. Retry after: {retry_after}s.")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many shared gallery requests ({limit} per {window} seconds). Please try again later.",
                headers={"Retry-After": str(retry_after)}
            )

        logger.debug(f"Rate limit check passed for {address}. Count: {current_count}")
        return True

    except redis.RedisError as e:
        logger.error(f"Redis error during rate limiting check for {address}: {e}. Allowing request (Fail open).", exc_info=True)
        return True
