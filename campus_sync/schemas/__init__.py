# campus_sync/schemas/__init__.py
from .attendance import AttendanceStatus, ClassAttendanceRequest, AttendanceUpdateRequest
from .chat import ChatMessage, admin_channel, class_channel, dm_channel, teacher_ai_channel
from .constraints import ChatWindow, Constraints, FacultyPreference, Unavailability
from .entities import (
    ClassRoom, EntityKind, Faculty, Institution, Role, Room, Student, Subject, User,
)
from .portal import Exam, Page, StudentNotification, SubjectAttendance, TeacherRequest, TeacherRequestCreate
from .sync import AllData, LoginResponse
from .timetable import TimetableEntry

__all__ = [
    "AttendanceStatus", "ClassAttendanceRequest", "AttendanceUpdateRequest",
    "ChatMessage", "admin_channel", "class_channel", "dm_channel", "teacher_ai_channel",
    "ChatWindow", "Constraints", "FacultyPreference", "Unavailability",
    "ClassRoom", "EntityKind", "Faculty", "Institution", "Role", "Room",
    "Student", "Subject", "User",
    "Exam", "Page", "StudentNotification", "SubjectAttendance", "TeacherRequest", "TeacherRequestCreate",
    "AllData", "LoginResponse", "TimetableEntry",
]
