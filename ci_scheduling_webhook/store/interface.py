from typing import Any


class KeyValueStore:
    def get(self, key: str) -> Any | None:
        """
        Return the decoded JSON value stored under key, or None if it is missing or expired.
        """
        raise NotImplementedError
