# campus_sync/services/attendance_service.py
"""Attendance state machine and its optimistic write paths."""
import logging
from dataclasses import dataclass
from datetime import date as date_type
from typing import Mapping, Optional, Sequence, Union

from ..core.entity_store import EntityStore
from ..core.exceptions import AuthError, PermissionError
from ..core.session import SessionManager
from ..schemas.attendance import (
    AttendanceRecord, AttendanceStatus, AttendanceUpdateRequest,
    ClassAttendanceRequest, date_key,
)
from ..schemas.base import build_request
from ..schemas.entities import Role
from ..schemas.sync import Ack
from ..utils.optimistic import OptimisticResult, optimistic_update
from .http_client import ApiClient

logger = logging.getLogger(__name__)

Status = AttendanceStatus
DateLike = Union[str, date_type]

TEACHER_TARGETS = frozenset({Status.PRESENT, Status.ABSENT})
UNLOCKED = {Status.PRESENT_LOCKED: Status.PRESENT, Status.ABSENT_LOCKED: Status.ABSENT}


@dataclass(frozen=True)
class AttendanceSummary:
    total: int
    present: int
    absent: int
    unmarked: int


class AttendanceReconciler:
    """Decides every status change for one (class, date, student).

    Locked statuses belong to administrators: teachers can neither leave
    them nor produce them, and only an administrator can suggest presence.
    A teacher marking a suggested record present confirms it as plain
    ``present``. Teachers only toggle between present and absent.
    """

    def transition(self, current: Optional[Status], target: Status, role: Role) -> Status:
        current = Status(current) if current else Status.UNMARKED
        target = Status(target)
        if role is Role.ADMIN:
            return self._admin_transition(current, target)
        if role is Role.TEACHER:
            return self._teacher_transition(current, target)
        raise PermissionError("Only teachers and administrators can mark attendance.")

    def _teacher_transition(self, current: Status, target: Status) -> Status:
        if current.is_locked:
            raise PermissionError()
        if target not in TEACHER_TARGETS:
            raise PermissionError(f"Only an administrator can set '{target.value}'.")
        return target

    def _admin_transition(self, current: Status, target: Status) -> Status:
        if target is Status.PRESENT_SUGGESTED and current not in (Status.UNMARKED, Status.PRESENT_SUGGESTED):
            raise PermissionError("Presence can only be suggested for an unmarked record.")
        return target

    def reconcile_batch(
        self,
        current: Mapping[str, Status],
        proposed: Mapping[str, Status],
        role: Role,
    ) -> AttendanceRecord:
        """Validate a whole-record replacement before anything is applied.

        Students missing from ``proposed`` fall back to unmarked, so a batch
        cannot silently drop a locked entry, and a teacher cannot clear a mark.
        """
        for student_id in set(current) | set(proposed):
            existing = Status(current.get(student_id, Status.UNMARKED))
            target = Status(proposed.get(student_id, Status.UNMARKED))
            if target is existing:
                continue
            try:
                self.transition(existing, target, role)
            except PermissionError:
                logger.warning(
                    f"Rejected {role.value} change for student {student_id}: {existing.value} -> {target.value}"
                )
                raise
        return {student_id: Status(status) for student_id, status in proposed.items()}

    @staticmethod
    def summarize(record: Mapping[str, Status], roster: Optional[Sequence[str]] = None) -> AttendanceSummary:
        students = list(roster) if roster is not None else list(record)
        statuses = [Status(record.get(s, Status.UNMARKED)) for s in students]
        return AttendanceSummary(
            total=len(students),
            present=sum(1 for s in statuses if s.counts_present),
            absent=sum(1 for s in statuses if s.counts_absent),
            unmarked=sum(1 for s in statuses if s is Status.UNMARKED),
        )


class AttendanceService:
    """Optimistic attendance writes.

    The store is updated before the request goes out. When persisting fails
    the local state is kept (unless ``rollback_on_failure``) and the error
    comes back in the result instead of being raised.
    """

    def __init__(
        self,
        client: ApiClient,
        store: EntityStore,
        session: SessionManager,
        reconciler: Optional[AttendanceReconciler] = None,
        rollback_on_failure: bool = False,
    ):
        self.client = client
        self.store = store
        self.session = session
        self.reconciler = reconciler or AttendanceReconciler()
        self.rollback_on_failure = rollback_on_failure

    def _role(self, role: Optional[Role]) -> Role:
        if role is not None:
            return role
        user = self.session.get_user()
        if user is None:
            raise AuthError("Not authenticated. Please log in.")
        return user.role

    def record(self, class_id: str, date: DateLike, roster: Optional[Sequence[str]] = None) -> AttendanceRecord:
        if roster is None:
            return self.store.attendance_record(class_id, date_key(date))
        return self.store.attendance_for(class_id, date_key(date), roster)

    def summary(self, class_id: str, date: DateLike, roster: Sequence[str]) -> AttendanceSummary:
        return self.reconciler.summarize(self.record(class_id, date, roster), roster)

    async def save_class_attendance(
        self,
        class_id: str,
        date: DateLike,
        records: Mapping[str, Status],
        role: Optional[Role] = None,
    ) -> OptimisticResult[Ack]:
        """Replace the whole record for (class, date)."""
        day = date_key(date)
        actor = self._role(role)
        request = build_request(ClassAttendanceRequest, class_id=class_id, date=day, records=dict(records))
        to_save = self.reconciler.reconcile_batch(self.store.attendance_record(class_id, day), request.records, actor)
        payload = request.model_copy(update={"records": to_save}).to_wire()

        return await optimistic_update(
            snapshot=lambda: self.store.attendance_record(class_id, day),
            apply=lambda: self.store.set_attendance_record(class_id, day, to_save),
            remote=lambda: self.client.request("PUT", "/attendance/class", json=payload, schema=Optional[Ack]),
            restore=self._restorer(class_id, day),
            label=f"save attendance {class_id}/{day}",
        )

    async def update_attendance(
        self,
        class_id: str,
        date: DateLike,
        student_id: str,
        status: Status,
        role: Optional[Role] = None,
    ) -> OptimisticResult[Ack]:
        """Change one student's status, merged into the stored record."""
        day = date_key(date)
        actor = self._role(role)
        request = build_request(
            AttendanceUpdateRequest, class_id=class_id, date=day, student_id=student_id, status=status,
        )
        current = self.store.attendance_record(class_id, day).get(student_id, Status.UNMARKED)
        try:
            new_status = self.reconciler.transition(current, request.status, actor)
        except PermissionError:
            logger.warning(f"Rejected {actor.value} change for student {student_id}: {current.value} -> {request.status.value}")
            raise
        payload = request.model_copy(update={"status": new_status}).to_wire()

        return await optimistic_update(
            snapshot=lambda: self.store.attendance_record(class_id, day),
            apply=lambda: self.store.set_attendance_status(class_id, day, student_id, new_status),
            remote=lambda: self.client.request("PUT", "/attendance", json=payload, schema=Optional[Ack]),
            restore=self._restorer(class_id, day),
            label=f"update attendance {class_id}/{day}/{student_id}",
        )

    def _restorer(self, class_id: str, day: str):
        if not self.rollback_on_failure:
            return None
        return lambda saved: self.store.set_attendance_record(class_id, day, saved)

    # --- administrator shortcuts ---

    async def lock(self, class_id: str, date: DateLike, student_id: str, present: bool) -> OptimisticResult[Ack]:
        status = Status.PRESENT_LOCKED if present else Status.ABSENT_LOCKED
        return await self.update_attendance(class_id, date, student_id, status, Role.ADMIN)

    async def suggest_present(self, class_id: str, date: DateLike, student_id: str) -> OptimisticResult[Ack]:
        return await self.update_attendance(class_id, date, student_id, Status.PRESENT_SUGGESTED, Role.ADMIN)

    async def unlock(self, class_id: str, date: DateLike, student_id: str) -> OptimisticResult[Ack]:
        current = self.store.attendance_record(class_id, date_key(date)).get(student_id, Status.UNMARKED)
        if not current.is_locked:
            return OptimisticResult.success()
        return await self.update_attendance(class_id, date, student_id, UNLOCKED[current], Role.ADMIN)

    async def confirm_suggestion(self, class_id: str, date: DateLike, student_id: str) -> OptimisticResult[Ack]:
        return await self.update_attendance(class_id, date, student_id, Status.PRESENT, Role.TEACHER)
