"""
Best-effort event publisher over Redis pub/sub
"""

import json
import logging
from typing import Optional

from economy.core.clock import Clock, utcnow
from economy.core.metrics import EVENT_PUBLISH_FAILURES

# Configure logging
logger = logging.getLogger(__name__)


def channel_for(event_type: str) -> str:
    """gift_sent -> gift:sent, verification_updated -> verification:updated"""
    return ":".join(event_type.rsplit("_", 1))


class EventPublisher:
    """
    Publish domain events after commit.

    Delivery is at-most-once: failures are logged and dropped, never retried,
    and never reported to the caller.
    """

    def __init__(self, redis_client, clock: Clock = utcnow):
        self.redis = redis_client
        self.clock = clock

    async def publish(self, event_type: str, subject_id: str, data: Optional[dict] = None) -> bool:
        payload = {
            "type": event_type,
            "subject_id": subject_id,
            "timestamp": self.clock().isoformat(),
            "data": data or {},
        }
        try:
            await self.redis.publish(channel_for(event_type), json.dumps(payload, default=str))
        except Exception as e:
            EVENT_PUBLISH_FAILURES.labels(type=event_type).inc()
            logger.warning(f"Failed to publish {event_type} for {subject_id}: {e}")
            return False
        return True
