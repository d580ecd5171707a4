import json
from typing import Any

import redis

from .interface import KeyValueStore


class RedisStore(KeyValueStore):
    def __init__(self, url: str, timeout_seconds: float | None = None) -> None:
        # Lookups sit on the admission path; bound them so an outage degrades quickly
        self._client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )

    def get(self, key: str) -> Any | None:
        val_bytes = self._client.get(key)

        # Missing or expired
        if val_bytes is None:
            return None

        # Published values are JSON; a value we can't decode is the publisher's bug
        try:
            return json.loads(val_bytes)
        except ValueError as e:
            raise ValueError(f"undecodable value under {key}: {e}") from e
