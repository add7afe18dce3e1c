# campus_sync/utils/write_fence.py
from typing import Dict, Hashable


class WriteFence:
    """Monotonic request tokens per key.

    A response may be applied only if its token is still the newest one
    issued for the key; otherwise a later request for the same record is in
    flight or already landed.
    """

    def __init__(self):
        self._counter = 0
        self._latest: Dict[Hashable, int] = {}

    def issue(self, key: Hashable) -> int:
        self._counter += 1
        self._latest[key] = self._counter
        return self._counter

    def is_current(self, key: Hashable, token: int) -> bool:
        return self._latest.get(key) == token

    def release(self, key: Hashable, token: int):
        if self._latest.get(key) == token:
            del self._latest[key]
