"""
Cluster activity stream — lifecycle events pushed to Redis for dashboards.

Optional: without REDIS_URL, or with Redis down, publishing is a no-op.
"""
import json as _json
import logging

from zeebe_operator.config import settings
from zeebe_operator.models import now

logger = logging.getLogger("zeebe-operator.activity")

STREAM_MAXLEN = 100
CHANNEL = "zeebe:events"

_redis_client = None


def _get_redis():
    """Lazy-init Redis client. Returns None if unavailable."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    if not settings.REDIS_URL:
        return None
    try:
        import redis
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        _redis_client.ping()
        logger.info(f"Redis connected: {settings.REDIS_URL}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis unavailable (non-fatal): {e}")
        _redis_client = None
        return None


def publish_event(cluster_name: str, event_type: str, message: str, ready: str = ""):
    """Publish event to the cluster's Redis stream and the global channel."""
    r = _get_redis()
    if not r:
        return
    entry = {
        "type": event_type,
        "message": message,
        "ready": ready,
        "timestamp": now(),
        "cluster": cluster_name,
    }
    try:
        r.xadd(f"zeebe:events:{cluster_name}", entry, maxlen=STREAM_MAXLEN)
        r.publish(CHANNEL, _json.dumps(entry))
    except Exception as e:
        logger.debug(f"Redis publish failed (non-fatal): {e}")
