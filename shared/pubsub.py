import logging
from typing import List, Optional

import redis

from .events import Event

logger = logging.getLogger(__name__)

EVENTS_CHANNEL = "competition:events"
EVENT_LOG_KEY = "competition:event_log"
EVENT_LOG_SIZE = 200


def redis_from_url(redis_url: str, socket_timeout: Optional[float] = 5) -> Optional[redis.Redis]:
    """Build a client, or None when no URL is configured."""
    if not redis_url:
        return None
    return redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=socket_timeout
    )


class EventPublisher:
    """
    Publishes competition events for live dashboards.
    A None client turns every call into a no-op so the app runs without redis.
    """
    
    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
    
    @property
    def enabled(self) -> bool:
        return self.redis is not None
    
    def publish(self, event: Event) -> bool:
        if not self.enabled:
            return False
        try:
            payload = event.to_json()
            self.redis.publish(EVENTS_CHANNEL, payload)
            self.redis.lpush(EVENT_LOG_KEY, payload)
            self.redis.ltrim(EVENT_LOG_KEY, 0, EVENT_LOG_SIZE - 1)
            return True
        except redis.RedisError as e:
            # Live refresh is best effort; the write it describes already committed
            logger.warning(f"Could not publish {event.type}: {e}")
            return False
    
    def recent_events(self, count: int = 50) -> List[Event]:
        if not self.enabled:
            return []
        events_json = self.redis.lrange(EVENT_LOG_KEY, 0, count - 1)
        return [Event.from_json(e) for e in events_json]
    
    def listen(self, timeout: float = 30):
        """Yield event payloads (or None on keepalive timeouts) from a dedicated connection."""
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(EVENTS_CHANNEL)
        try:
            while True:
                message = pubsub.get_message(timeout=timeout)
                if message and message['type'] == 'message':
                    yield message['data']
                else:
                    yield None
        finally:
            pubsub.close()
