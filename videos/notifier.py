"""
Best-effort progress broadcast keyed by job id.

Events go out as JSON on the Redis channel "<prefix>:<job_id>":
    {"event": "progress", "data": {"percent": 42}}
    {"event": "completed", "data": {...upload response...}}
No buffering, no delivery guarantee: nobody listening means nobody sees it.
"""

import json
import logging

import redis
from django.conf import settings

logger = logging.getLogger(__name__)


def clamp_percent(percent) -> int:
    try:
        value = int(percent)
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, value))


class ProgressNotifier:
    def progress(self, job_id: str, percent) -> None:
        self.emit(job_id, "progress", {"percent": clamp_percent(percent)})

    def completed(self, job_id: str, result: dict) -> None:
        self.emit(job_id, "completed", result)

    def emit(self, job_id: str, event: str, data) -> None:
        raise NotImplementedError


class NullNotifier(ProgressNotifier):
    def emit(self, job_id, event, data):
        pass


class RecordingNotifier(ProgressNotifier):
    """Keeps every event in memory, in order."""

    def __init__(self):
        self.events = []

    def emit(self, job_id, event, data):
        self.events.append((job_id, event, data))

    def for_job(self, job_id):
        return [(event, data) for jid, event, data in self.events if jid == job_id]


class RedisNotifier(ProgressNotifier):
    def __init__(self, client, *, channel_prefix: str = "progress"):
        self.client = client
        self.channel_prefix = channel_prefix

    def channel(self, job_id: str) -> str:
        return f"{self.channel_prefix}:{job_id}"

    def emit(self, job_id, event, data):
        payload = json.dumps({"event": event, "data": data})
        try:
            self.client.publish(self.channel(job_id), payload)
        except redis.RedisError as e:
            logger.warning("Dropped %s event for job %s: %s", event, job_id, e)


def get_notifier() -> ProgressNotifier:
    client = redis.Redis.from_url(settings.PROGRESS_REDIS_URL)
    return RedisNotifier(client, channel_prefix=settings.PROGRESS_CHANNEL_PREFIX)
