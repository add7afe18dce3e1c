# campus_sync/core/entity_store.py
"""In-memory mirror of server-owned records."""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.attendance import Attendance, AttendanceRecord, AttendanceStatus
from ..schemas.base import Entity
from ..schemas.chat import ChatMessage
from ..schemas.constraints import Constraints
from ..schemas.entities import EntityKind
from ..schemas.timetable import TimetableEntry

logger = logging.getLogger(__name__)

CONSTRAINTS = "constraints"
TIMETABLE = "timetable"
ATTENDANCE = "attendance"
CHAT = "chat"
TEACHER_REQUESTS = "teacherRequests"
STUDENT_ATTENDANCE = "studentAttendance"
EXAMS = "exams"
NOTIFICATIONS = "notifications"
RECORD_SETS = (TEACHER_REQUESTS, STUDENT_ATTENDANCE, EXAMS, NOTIFICATIONS)

Listener = Callable[[str], None]


class EntityStore:
    """One ordered collection per entity kind plus the singleton/indexed data.

    Only the sync engine writes here. Every write swaps in a new container
    instead of mutating the old one, so listeners comparing references see
    the change and snapshots handed out earlier stay valid.
    """

    def __init__(self):
        self._collections: Dict[EntityKind, Tuple[Entity, ...]] = {kind: () for kind in EntityKind}
        self._constraints: Optional[Constraints] = None
        self._timetable: Tuple[TimetableEntry, ...] = ()
        self._attendance: Attendance = {}
        self._chat: Tuple[ChatMessage, ...] = ()
        self._chat_ids: set = set()
        self._chat_tail: Dict[str, int] = {}
        self._chat_cursor = 0
        self._records: Dict[str, Tuple[Any, ...]] = {name: () for name in RECORD_SETS}
        self._listeners: List[Listener] = []

    # --- subscriptions ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, name: str):
        for listener in list(self._listeners):
            listener(name)

    # --- generic collections ---

    def upsert(self, kind: EntityKind, item: Entity) -> Entity:
        if not item.id:
            raise ValueError(f"Cannot store a {kind.value} without an id")
        current = self._collections[kind]
        for index, existing in enumerate(current):
            if existing.id == item.id:
                self._collections[kind] = current[:index] + (item,) + current[index + 1:]
                break
        else:
            self._collections[kind] = current + (item,)
        self._notify(kind.value)
        return item

    def remove(self, kind: EntityKind, entity_id: str) -> bool:
        current = self._collections[kind]
        remaining = tuple(item for item in current if item.id != entity_id)
        if len(remaining) == len(current):
            return False
        self._collections[kind] = remaining
        self._notify(kind.value)
        return True

    def list(self, kind: EntityKind) -> Tuple[Entity, ...]:
        return self._collections[kind]

    def get(self, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        for item in self._collections[kind]:
            if item.id == entity_id:
                return item
        return None

    def replace_all(self, kind: EntityKind, items: Iterable[Entity]):
        by_id: Dict[str, Entity] = {}
        for item in items:
            if not item.id:
                logger.warning(f"Dropping {kind.value} without id from bulk data")
                continue
            by_id[item.id] = item
        self._collections[kind] = tuple(by_id.values())
        self._notify(kind.value)

    # --- constraints singleton ---

    @property
    def constraints(self) -> Optional[Constraints]:
        return self._constraints

    def set_constraints(self, constraints: Optional[Constraints]):
        self._constraints = constraints
        self._notify(CONSTRAINTS)

    # --- timetable snapshot ---

    @property
    def timetable(self) -> Tuple[TimetableEntry, ...]:
        return self._timetable

    def replace_timetable(self, entries: Iterable[TimetableEntry]):
        self._timetable = tuple(entries)
        self._notify(TIMETABLE)

    # --- attendance index ---

    @property
    def attendance(self) -> Attendance:
        """Copy of the full two-level index."""
        return {
            class_id: {day: dict(record) for day, record in by_date.items()}
            for class_id, by_date in self._attendance.items()
        }

    def attendance_record(self, class_id: str, date: str) -> AttendanceRecord:
        return dict(self._attendance.get(class_id, {}).get(date, {}))

    def attendance_for(self, class_id: str, date: str, roster: Sequence[str]) -> AttendanceRecord:
        """Record made total over ``roster``; unknown students read as unmarked."""
        stored = self._attendance.get(class_id, {}).get(date, {})
        return {student_id: stored.get(student_id, AttendanceStatus.UNMARKED) for student_id in roster}

    def set_attendance_record(self, class_id: str, date: str, records: AttendanceRecord):
        # copy both levels; earlier snapshots must not alias the new maps
        attendance = dict(self._attendance)
        by_date = dict(attendance.get(class_id, {}))
        by_date[date] = dict(records)
        attendance[class_id] = by_date
        self._attendance = attendance
        self._notify(ATTENDANCE)

    def set_attendance_status(self, class_id: str, date: str, student_id: str, status: AttendanceStatus):
        record = dict(self._attendance.get(class_id, {}).get(date, {}))
        record[student_id] = status
        self.set_attendance_record(class_id, date, record)

    def replace_attendance(self, attendance: Attendance):
        self._attendance = {
            class_id: {day: dict(record) for day, record in by_date.items()}
            for class_id, by_date in attendance.items()
        }
        self._notify(ATTENDANCE)

    # --- chat log ---

    @property
    def chat_messages(self) -> Tuple[ChatMessage, ...]:
        return self._chat

    @property
    def chat_cursor(self) -> int:
        """Newest server timestamp seen; local clocks never move it."""
        return self._chat_cursor

    def advance_chat_cursor(self, timestamp: int):
        self._chat_cursor = max(self._chat_cursor, timestamp)

    def messages(self, channel: str, class_id: Optional[str] = None) -> Tuple[ChatMessage, ...]:
        return tuple(
            m for m in self._chat
            if m.channel == channel and (class_id is None or m.class_id == class_id)
        )

    def last_timestamp(self, channel: Optional[str] = None) -> int:
        if channel is None:
            return max(self._chat_tail.values(), default=0)
        return self._chat_tail.get(channel, 0)

    def _in_order(self, message: ChatMessage) -> ChatMessage:
        # a channel reads in append order, so timestamps may not go backwards
        tail = self._chat_tail.get(message.channel, 0)
        if message.timestamp < tail:
            message = message.model_copy(update={"timestamp": tail})
        self._chat_tail[message.channel] = message.timestamp
        return message

    def append_message(self, message: ChatMessage) -> bool:
        """Append-only; a message id that is already present is ignored."""
        if message.id in self._chat_ids:
            return False
        self._chat = self._chat + (self._in_order(message),)
        self._chat_ids.add(message.id)
        self._notify(CHAT)
        return True

    def replace_chat(self, messages: Iterable[ChatMessage]):
        """Load the server's log; it also sets the polling cursor."""
        kept = []
        seen = set()
        self._chat_tail = {}
        cursor = 0
        for message in messages:
            if message.id not in seen:
                cursor = max(cursor, message.timestamp)
                kept.append(self._in_order(message))
                seen.add(message.id)
        self._chat = tuple(kept)
        self._chat_ids = seen
        self._chat_cursor = cursor
        self._notify(CHAT)

    # --- portal record sets ---

    def records(self, name: str) -> Tuple[Any, ...]:
        return self._records[name]

    def replace_records(self, name: str, items: Iterable[Any]):
        self._records[name] = tuple(items)
        self._notify(name)

    def add_record(self, name: str, item: Any):
        """Replace the record with the same id, else append."""
        current = self._records[name]
        item_id = getattr(item, "id", None)
        for index, existing in enumerate(current):
            if item_id and getattr(existing, "id", None) == item_id:
                self._records[name] = current[:index] + (item,) + current[index + 1:]
                break
        else:
            self._records[name] = current + (item,)
        self._notify(name)

    # --- lifecycle ---

    def clear(self):
        self._collections = {kind: () for kind in EntityKind}
        self._constraints = None
        self._timetable = ()
        self._attendance = {}
        self._chat = ()
        self._chat_ids = set()
        self._chat_tail = {}
        self._chat_cursor = 0
        self._records = {name: () for name in RECORD_SETS}
        self._notify("*")
