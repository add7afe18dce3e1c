# campus_sync/services/__init__.py
from .attendance_service import AttendanceReconciler, AttendanceService
from .chat_service import ChatAccessGate, ChatService, is_chat_open
from .entity_repository import EntityRepository
from .http_client import ApiClient
from .sync_service import SyncEngine

__all__ = [
    "AttendanceReconciler", "AttendanceService",
    "ChatAccessGate", "ChatService", "is_chat_open",
    "EntityRepository", "ApiClient", "SyncEngine",
]
