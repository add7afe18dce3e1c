# campus_sync/services/sync_service.py
"""Orchestrates server calls and reconciles their results into the store."""
import logging
from datetime import date as date_type
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..core.entity_store import (
    EXAMS, NOTIFICATIONS, STUDENT_ATTENDANCE, TEACHER_REQUESTS, EntityStore,
)
from ..core.exceptions import AuthError, PermissionError, StaleSessionError
from ..core.session import SessionManager
from ..schemas.attendance import AttendanceStatus
from ..schemas.base import Entity, build_request
from ..schemas.chat import ChatMessage
from ..schemas.constraints import Constraints, FacultyAvailabilityRequest, Unavailability
from ..schemas.entities import (
    ENTITY_MODELS, ClassRoom, EntityKind, Faculty, Institution, Role, Room, Student, Subject, User,
)
from ..schemas.portal import Page, TeacherAvailabilityRequest, TeacherRequest, TeacherRequestCreate
from ..schemas.sync import Ack, AllData
from ..schemas.timetable import TimetableEntry
from ..utils.optimistic import OptimisticResult
from ..utils.write_fence import WriteFence
from .attendance_service import AttendanceService
from .chat_service import ChatService
from .entity_repository import EntityRepository
from .http_client import ApiClient

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(
        self,
        client: ApiClient,
        store: EntityStore,
        session: SessionManager,
        attendance: Optional[AttendanceService] = None,
        chat: Optional[ChatService] = None,
    ):
        self.client = client
        self.store = store
        self.session = session
        self.fence = WriteFence()

        self.classes: EntityRepository[ClassRoom] = self._repository(EntityKind.CLASS)
        self.faculty: EntityRepository[Faculty] = self._repository(EntityKind.FACULTY)
        self.subjects: EntityRepository[Subject] = self._repository(EntityKind.SUBJECT)
        self.rooms: EntityRepository[Room] = self._repository(EntityKind.ROOM)
        self.students: EntityRepository[Student] = self._repository(EntityKind.STUDENT)
        self.institutions: EntityRepository[Institution] = self._repository(EntityKind.INSTITUTION)
        self.users: EntityRepository[User] = self._repository(EntityKind.USER)

        self.attendance = attendance or AttendanceService(client, store, session)
        self.chat = chat or ChatService(client, store, session)

    def _repository(self, kind: EntityKind):
        return EntityRepository(kind, ENTITY_MODELS[kind], self.client, self.store, self.fence)

    def repository(self, kind: Union[EntityKind, str]) -> EntityRepository:
        kind = EntityKind(kind)
        return {
            EntityKind.CLASS: self.classes,
            EntityKind.FACULTY: self.faculty,
            EntityKind.SUBJECT: self.subjects,
            EntityKind.ROOM: self.rooms,
            EntityKind.STUDENT: self.students,
            EntityKind.INSTITUTION: self.institutions,
            EntityKind.USER: self.users,
        }[kind]

    # --- generic entities (pessimistic) ---

    async def save_entity(self, kind: Union[EntityKind, str], data: Union[Entity, Mapping[str, Any]]) -> Entity:
        return await self.repository(kind).save(data)

    async def delete_entity(self, kind: Union[EntityKind, str], entity_id: str) -> None:
        await self.repository(kind).delete(entity_id)

    # --- bulk ---

    async def fetch_all(self) -> AllData:
        """Load every collection. Must run again whenever the token changes."""
        generation = self.session.generation
        data = await self.client.request("GET", "/all-data", schema=AllData)
        if generation != self.session.generation:
            logger.warning("Session changed while bulk data was loading, discarding it")
            raise StaleSessionError("Session changed during fetch")

        for kind in EntityKind:
            self.store.replace_all(kind, getattr(data, kind.collection))
        self.store.set_constraints(data.constraints)
        self.store.replace_timetable(data.timetable)
        self.store.replace_attendance(data.attendance)
        self.store.replace_chat(data.chat_messages)
        self.store.replace_records(TEACHER_REQUESTS, data.teacher_requests)
        self.store.replace_records(STUDENT_ATTENDANCE, data.student_attendance)
        self.store.replace_records(EXAMS, data.exams)
        self.store.replace_records(NOTIFICATIONS, data.notifications)
        logger.info(
            f"Loaded {len(data.classes)} classes, {len(data.students)} students, "
            f"{len(data.chat_messages)} chat messages"
        )
        return data

    async def reset_all_data(self) -> AllData:
        await self.client.request("POST", "/reset-data", schema=Optional[Ack])
        logger.info("Server data reset, reloading")
        return await self.fetch_all()

    # --- singletons and snapshots (pessimistic) ---

    async def update_constraints(self, constraints: Union[Constraints, Mapping[str, Any]]) -> Constraints:
        """Replace the constraints singleton wholesale."""
        if not isinstance(constraints, Constraints):
            constraints = build_request(Constraints, **dict(constraints))
        saved = await self.client.request(
            "PUT", "/constraints", json=constraints.to_wire(), schema=Constraints,
        )
        self.store.set_constraints(saved)
        return saved

    async def update_faculty_availability(
        self, faculty_id: str, unavailability: Iterable[Union[Unavailability, Mapping[str, str]]],
    ) -> Constraints:
        request = build_request(FacultyAvailabilityRequest, faculty_id=faculty_id, unavailability=list(unavailability))
        saved = await self.client.request(
            "PUT", "/constraints/faculty-availability", json=request.to_wire(), schema=Constraints,
        )
        self.store.set_constraints(saved)
        return saved

    async def save_timetable(self, entries: Sequence[Union[TimetableEntry, Mapping[str, Any]]]) -> List[TimetableEntry]:
        timetable = [e if isinstance(e, TimetableEntry) else build_request(TimetableEntry, **dict(e)) for e in entries]
        await self.client.request(
            "POST", "/timetable", json=[entry.to_wire() for entry in timetable], schema=Optional[Any],
        )
        self.store.replace_timetable(timetable)
        return timetable

    # --- teacher workflows (pessimistic) ---

    async def update_teacher_availability(
        self, faculty_id: str, availability: Mapping[str, Sequence[str]],
    ) -> Faculty:
        """Replace a teacher's weekly availability. Teachers may only edit their own."""
        user = self._user()
        if user.role is Role.TEACHER and user.profile_id != faculty_id:
            raise PermissionError("Teachers can only change their own availability.")
        request = build_request(TeacherAvailabilityRequest, faculty_id=faculty_id, availability=dict(availability))

        key = (EntityKind.FACULTY, faculty_id)
        token = self.fence.issue(key)
        try:
            saved = await self.client.request(
                "PUT", "/teacher/availability", json=request.to_wire(), schema=Faculty,
            )
            if self.fence.is_current(key, token):
                self.store.upsert(EntityKind.FACULTY, saved)
            else:
                logger.warning(f"Discarding stale availability for faculty {faculty_id}")
            return saved
        finally:
            self.fence.release(key, token)

    async def submit_teacher_request(
        self, request: Union[TeacherRequestCreate, Mapping[str, Any]],
    ) -> TeacherRequest:
        user = self._user()
        if user.role is not Role.TEACHER:
            raise PermissionError("Only teachers can submit requests.")
        if not isinstance(request, TeacherRequestCreate):
            request = build_request(TeacherRequestCreate, **dict(request))

        saved = await self.client.request(
            "POST", "/teacher/requests", json=request.to_wire(), schema=TeacherRequest,
        )
        self.store.add_record(TEACHER_REQUESTS, saved)
        logger.info(f"Submitted teacher request {saved.id}")
        return saved

    # --- paged lists ---

    async def paginated_students(
        self, class_id: str, page: int = 1, limit: int = 20, search: str = "",
    ) -> Page[Student]:
        params = {"classId": class_id, "page": page, "limit": limit, "search": search}
        return await self._page("/paginated/students", params, EntityKind.STUDENT, Page[Student])

    async def paginated_users(
        self, role: Union[Role, str], page: int = 1, limit: int = 20, search: str = "",
    ) -> Page[User]:
        params = {"role": Role(role).value, "page": page, "limit": limit, "search": search}
        return await self._page("/paginated/users", params, EntityKind.USER, Page[User])

    async def _page(self, path: str, params: Dict[str, Any], kind: EntityKind, schema: Any):
        # rows seen on a page are fresher than the bulk copy
        generation = self.session.generation
        result = await self.client.request("GET", path, params=params, schema=schema)
        if generation == self.session.generation:
            for item in result.data:
                if item.id:
                    self.store.upsert(kind, item)
        return result

    def _user(self) -> User:
        user = self.session.get_user()
        if user is None or not self.session.is_authenticated():
            raise AuthError("Not authenticated. Please log in.")
        return user

    # --- optimistic paths ---

    async def save_class_attendance(
        self,
        class_id: str,
        date: Union[str, date_type],
        records: Mapping[str, AttendanceStatus],
        role: Optional[Role] = None,
    ) -> OptimisticResult[Ack]:
        return await self.attendance.save_class_attendance(class_id, date, records, role)

    async def update_attendance(
        self,
        class_id: str,
        date: Union[str, date_type],
        student_id: str,
        status: AttendanceStatus,
        role: Optional[Role] = None,
    ) -> OptimisticResult[Ack]:
        return await self.attendance.update_attendance(class_id, date, student_id, status, role)

    async def send_message(self, text: str, class_id: str) -> OptimisticResult[ChatMessage]:
        return await self.chat.send_message(text, class_id)

    def roster(self, class_id: str) -> List[str]:
        """Student ids of a class, ordered by roll number."""
        students = [s for s in self.store.list(EntityKind.STUDENT) if s.class_id == class_id]
        return [s.id for s in sorted(students, key=lambda s: s.roll or "")]

    def snapshot_counts(self) -> Dict[str, int]:
        return {kind.collection: len(self.store.list(kind)) for kind in EntityKind}
