"""Redis connection used by the access-token blocklist."""

import redis
from django.conf import settings

_client: redis.Redis | None = None

# Blocklist checks sit on every authenticated request; a hung Redis must
# surface as BlocklistUnavailable quickly rather than stall the worker.
SOCKET_TIMEOUT_SECONDS = 2.0


def get_redis_client() -> redis.Redis:
    """Return the process-wide blocklist client, connecting lazily."""

    global _client
    if _client is None:
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
        )
    return _client


__all__ = ["get_redis_client"]
