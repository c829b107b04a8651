"""
Middleware для приложения
"""
from .logging import LoggingMiddleware
from .rate_limit import limiter, setup_rate_limiting

__all__ = ["LoggingMiddleware", "limiter", "setup_rate_limiting"]
