"""
Ограничение частоты запросов (slowapi)

Строгий лимит стоит на входе по PIN. Ключ: идентификатор терминала
(X-Terminal-Id), для клиентов без него IP адрес.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, status
from fastapi.responses import JSONResponse

from gmao.config import TERMINAL_ID_HEADER, get_settings
from gmao.logger import logger

settings = get_settings()


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request)


def get_rate_limit_key(request: Request) -> str:
    """
    Ключ лимита: terminal:<id> для полевых терминалов, ip:<адрес> для остальных
    """
    terminal_id = (request.headers.get(TERMINAL_ID_HEADER) or "").strip()
    if terminal_id:
        return f"terminal:{terminal_id}"
    return f"ip:{get_client_ip(request)}"


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[settings.rate_limit_default] if settings.enable_rate_limit else [],
    storage_uri="memory://",
    headers_enabled=False,
    enabled=settings.enable_rate_limit
)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(
        "Превышен лимит запросов",
        extra={
            "path": request.url.path,
            "rate_limit_key": get_rate_limit_key(request),
            "limit": str(exc.detail),
            "event_type": "security",
            "event_category": "rate_limit"
        }
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Слишком много попыток. Повторите позже.",
            "error_code": "RATE_LIMIT_EXCEEDED"
        }
    )


def setup_rate_limiting(app):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    if not settings.enable_rate_limit:
        logger.info("Ограничение частоты запросов отключено (ENABLE_RATE_LIMIT=false)")
        return

    logger.info(
        "Ограничение частоты запросов включено",
        extra={"default_limit": settings.rate_limit_default, "login_limit": settings.rate_limit_login}
    )
