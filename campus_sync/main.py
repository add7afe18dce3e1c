# campus_sync/main.py
"""Application state: session, client, store and sync engine wired together."""
import enum
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx

from .core.config import Settings, settings as default_settings
from .core.entity_store import EntityStore
from .core.exceptions import AuthError, CampusSyncException, StaleSessionError
from .core.session import SessionManager, SessionStorage
from .schemas.base import build_request
from .schemas.entities import Role, User
from .schemas.sync import AllData, LoginRequest
from .services.chat_service import ChatAccessGate, ChatService
from .services.attendance_service import AttendanceService
from .services.http_client import ApiClient
from .services.sync_service import SyncEngine

logger = logging.getLogger(__name__)


class AppState(str, enum.Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class CampusApp:
    """Everything a dashboard view needs, passed around explicitly.

    ``init()`` opens the HTTP client and loads data for an existing session;
    ``teardown()`` releases it. Use ``lifespan()`` to get both.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[SessionStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        gate: Optional[ChatAccessGate] = None,
        rollback_attendance_on_failure: bool = False,
    ):
        self.settings = settings or default_settings
        self.session = SessionManager(storage)
        self.store = EntityStore()
        self.client = ApiClient(self.session, self.settings, transport=transport)
        self.sync = SyncEngine(
            self.client,
            self.store,
            self.session,
            attendance=AttendanceService(
                self.client, self.store, self.session, rollback_on_failure=rollback_attendance_on_failure,
            ),
            chat=ChatService(self.client, self.store, self.session, gate=gate, settings=self.settings),
        )
        self.state = AppState.LOADING
        self.last_error: Optional[CampusSyncException] = None
        self._unsubscribe = self.session.on_invalidate(self._on_session_invalidated)

    @property
    def user(self) -> Optional[User]:
        return self.session.get_user()

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    # --- lifecycle ---

    async def init(self) -> AppState:
        await self.client.open()
        if self.session.is_authenticated():
            await self.refresh()
        else:
            self.state = AppState.READY
        return self.state

    async def teardown(self):
        self._unsubscribe()
        await self.client.close()
        logger.info("Campus app torn down")

    @asynccontextmanager
    async def lifespan(self):
        await self.init()
        try:
            yield self
        finally:
            await self.teardown()

    # --- auth ---

    async def login(self, username: str, password: str, role: Role) -> User:
        """Authenticate, persist the token and load data for the new session."""
        credentials = build_request(LoginRequest, username=username, password=password, role=role)
        response = await self.client.login(credentials)
        self.session.start(response.token, response.user)
        await self.refresh()
        return response.user

    def logout(self):
        self.session.invalidate()
        self.store.clear()
        self.state = AppState.READY

    def _on_session_invalidated(self):
        logger.info("Session ended, clearing local data")
        self.store.clear()
        self.state = AppState.READY

    # --- data ---

    async def refresh(self) -> Optional[AllData]:
        """Bulk fetch with the loading -> ready | error transition."""
        self.state = AppState.LOADING
        try:
            data = await self.sync.fetch_all()
        except StaleSessionError:
            # a newer login/logout owns the state now
            return None
        except AuthError as e:
            self.last_error = e
            self.state = AppState.READY
            return None
        except CampusSyncException as e:
            logger.error(f"Initial data load failed: {e.message}")
            self.last_error = e
            self.state = AppState.ERROR
            return None
        self.last_error = None
        self.state = AppState.READY
        logger.info(f"Campus data ready: {self.sync.snapshot_counts()}")
        return data

    async def reset_data(self) -> Optional[AllData]:
        """Server-side reset; callers show a blocking loader while ``state`` is loading."""
        self.state = AppState.LOADING
        try:
            data = await self.sync.reset_all_data()
        except StaleSessionError:
            return None
        except AuthError:
            self.state = AppState.READY
            raise
        except CampusSyncException as e:
            logger.error(f"Data reset failed: {e.message}")
            self.last_error = e
            self.state = AppState.ERROR
            raise
        self.last_error = None
        self.state = AppState.READY
        return data
