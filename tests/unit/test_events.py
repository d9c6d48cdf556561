"""
Unit tests for the event publisher
"""

import json

import pytest

from economy.services.events import EventPublisher, channel_for
from tests.fixtures.redis import FailingRedisClient, MockRedisClient


@pytest.mark.parametrize("event_type, channel", [
    ("gift_sent", "gift:sent"),
    ("verification_updated", "verification:updated"),
    ("verification_expired", "verification:expired"),
    ("vip_revoked", "vip:revoked"),
])
def test_channel_for(event_type, channel):
    assert channel_for(event_type) == channel


async def test_publish_sends_envelope(clock):
    redis_client = MockRedisClient()
    publisher = EventPublisher(redis_client, clock=clock)

    assert await publisher.publish("gift_sent", "receiver", {"quantity": 2}) is True

    channel, message = redis_client.published[0]
    assert channel == "gift:sent"
    payload = json.loads(message)
    assert payload["type"] == "gift_sent"
    assert payload["subject_id"] == "receiver"
    assert payload["timestamp"] == clock().isoformat()
    assert payload["data"] == {"quantity": 2}


async def test_publish_failure_is_swallowed(clock):
    publisher = EventPublisher(FailingRedisClient(failing=("publish",)), clock=clock)

    assert await publisher.publish("vip_updated", "user-1") is False
