from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.report_service import AttendanceReportService
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceSessionStore
from .classes.mysql_class_repository import MySQLClassRepository
from .classes.repository import ClassRepository
from .classes.service import ClassRegistry
from .common.locks import KeyedLocks
from .core.constants import DEFAULT_JOIN_REQUEST_COOLDOWN_MINUTES, DEFAULT_ROSTER_CAS_RETRIES
from .core.events import EventSink, LoggingEventSink
from .database.connection import DBConfig, DatabaseConnection
from .directory.mysql_directory import MySQLBatchDirectory, MySQLUserDirectory
from .directory.repository import BatchDirectory, UserDirectory
from .enrollment.service import EnrollmentCoordinator
from .join_requests.mysql_join_request_repository import MySQLJoinRequestRepository
from .join_requests.repository import JoinRequestRepository
from .join_requests.service import JoinRequestQueue


@dataclass(frozen=True)
class Container:
    classes_repo: ClassRepository
    join_requests_repo: JoinRequestRepository
    attendance_repo: AttendanceRepository
    batches: Optional[BatchDirectory]
    users: Optional[UserDirectory]
    events: EventSink

    class_registry: ClassRegistry
    enrollment_coordinator: EnrollmentCoordinator
    join_request_queue: JoinRequestQueue
    attendance_store: AttendanceSessionStore
    attendance_report_service: AttendanceReportService

    conn: Optional[DatabaseConnection] = None


def assemble(
    *,
    classes_repo: ClassRepository,
    join_requests_repo: JoinRequestRepository,
    attendance_repo: AttendanceRepository,
    batches: Optional[BatchDirectory] = None,
    users: Optional[UserDirectory] = None,
    events: Optional[EventSink] = None,
    conn: Optional[DatabaseConnection] = None,
    require_non_empty_roster: bool = True,
    join_request_cooldown_minutes: int = DEFAULT_JOIN_REQUEST_COOLDOWN_MINUTES,
    roster_cas_retries: int = DEFAULT_ROSTER_CAS_RETRIES,
) -> Container:
    """Wire services over the given repositories.

    The roster lock table is shared by ClassRegistry and
    EnrollmentCoordinator so capacity edits and roster writes on one class
    never interleave.
    """
    events = events or LoggingEventSink()
    class_locks = KeyedLocks()

    class_registry = ClassRegistry(
        classes_repo,
        join_requests_repo,
        attendance_repo,
        batches=batches,
        users=users,
        locks=class_locks,
        events=events,
        cas_retries=roster_cas_retries,
    )
    enrollment_coordinator = EnrollmentCoordinator(
        classes_repo,
        batches=batches,
        locks=class_locks,
        events=events,
        cas_retries=roster_cas_retries,
    )
    join_request_queue = JoinRequestQueue(
        join_requests_repo,
        classes_repo,
        enrollment_coordinator,
        batches=batches,
        events=events,
        cooldown_minutes=join_request_cooldown_minutes,
    )
    attendance_store = AttendanceSessionStore(
        attendance_repo,
        class_registry,
        events=events,
        require_non_empty_roster=require_non_empty_roster,
    )
    attendance_report_service = AttendanceReportService(attendance_repo, class_registry)

    return Container(
        classes_repo=classes_repo,
        join_requests_repo=join_requests_repo,
        attendance_repo=attendance_repo,
        batches=batches,
        users=users,
        events=events,
        class_registry=class_registry,
        enrollment_coordinator=enrollment_coordinator,
        join_request_queue=join_request_queue,
        attendance_store=attendance_store,
        attendance_report_service=attendance_report_service,
        conn=conn,
    )


def build_container(
    *,
    db_config: dict,
    require_non_empty_roster: bool = True,
    join_request_cooldown_minutes: int = DEFAULT_JOIN_REQUEST_COOLDOWN_MINUTES,
    roster_cas_retries: int = DEFAULT_ROSTER_CAS_RETRIES,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return assemble(
        classes_repo=MySQLClassRepository(conn),
        join_requests_repo=MySQLJoinRequestRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        batches=MySQLBatchDirectory(conn),
        users=MySQLUserDirectory(conn),
        conn=conn,
        require_non_empty_roster=require_non_empty_roster,
        join_request_cooldown_minutes=join_request_cooldown_minutes,
        roster_cas_retries=roster_cas_retries,
    )
