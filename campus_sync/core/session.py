# campus_sync/core/session.py
"""Session-scoped credential storage."""
import json
import logging
from typing import Callable, Dict, List, Optional, Protocol

from ..schemas.entities import User

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class SessionStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MemorySessionStorage:
    """Storage that lives as long as the process (one client session)."""
    def __init__(self):
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def clear(self) -> None:
        self._values.clear()


class SessionManager:
    def __init__(self, storage: Optional[SessionStorage] = None):
        self.storage = storage if storage is not None else MemorySessionStorage()
        self._listeners: List[Callable[[], None]] = []
        # bumped on every token change so in-flight fetches can detect a new session
        self.generation = 0

    def start(self, token: str, user: User) -> None:
        """Persist credentials after a successful login."""
        self.storage.set(TOKEN_KEY, token)
        self.storage.set(USER_KEY, user.model_dump_json(by_alias=True))
        self.generation += 1
        logger.info(f"Session started for {user.username} ({user.role.value})")

    def get_token(self) -> Optional[str]:
        return self.storage.get(TOKEN_KEY)

    def get_user(self) -> Optional[User]:
        raw = self.storage.get(USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("Stored user could not be parsed, ignoring it")
            return None

    def is_authenticated(self) -> bool:
        return bool(self.get_token())

    def on_invalidate(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def invalidate(self) -> None:
        """Clear credentials and push every listener to the logged-out state."""
        was_authenticated = self.is_authenticated()
        self.storage.clear()
        if not was_authenticated:
            return
        self.generation += 1
        logger.warning("Session invalidated")
        for callback in list(self._listeners):
            callback()
