"""FastAPI dependencies shared by the routers."""

from .admin import require_super_admin
from .state import get_lang, get_redis, get_resolver, get_sessionmaker

__all__ = [
    "get_lang",
    "get_redis",
    "get_resolver",
    "get_sessionmaker",
    "require_super_admin",
]
