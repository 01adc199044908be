"""Redis-backed cache of per-activity recording counts."""

from __future__ import annotations

import json
from typing import Dict, Optional

import redis

from collab.core.config import get_settings


class RecordingCountsCache:
    """Recording view/download counts keyed by activity id."""

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl_seconds: Optional[int] = None):
        settings = get_settings()
        self._client = redis_client or redis.Redis.from_url(
            settings.redis_url, decode_responses=True
        )
        self._ttl_seconds = ttl_seconds or settings.recording_counts_ttl_seconds

    def _key(self, activity_id: int) -> str:
        return f"collab:recording_counts:{activity_id}"

    def get(self, activity_id: int) -> Optional[Dict[str, Dict[str, int]]]:
        data = self._client.get(self._key(activity_id))
        if not data:
            return None
        return json.loads(data)

    def set(self, activity_id: int, counts: Dict[str, Dict[str, int]]) -> None:
        self._client.set(self._key(activity_id), json.dumps(counts), ex=self._ttl_seconds)

    def delete(self, activity_id: int) -> None:
        self._client.delete(self._key(activity_id))
