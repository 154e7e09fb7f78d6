"""Cache infrastructure module

Redis access for the optional shared peer entry store.
"""

from src.infrastructure.cache.redis_cache import RedisCache

__all__ = ["RedisCache"]
