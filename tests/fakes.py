"""In-memory stand-ins for the MySQL repositories and directory services."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from classroom.attendance.aggregator import aggregate
from classroom.attendance.model import AttendanceCounts, AttendanceEntry, AttendanceRecord
from classroom.classes.model import ClassRecord
from classroom.core.enums import JoinRequestStatus, RecordStatus
from classroom.core.exceptions import DuplicateSessionError
from classroom.join_requests.model import JoinRequest


class InMemoryClasses:
    """Thread-safe class store with version compare-and-swap on roster writes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[int, ClassRecord] = {}
        self._id = 0
        self.roster_writes = 0

    def create(self, *, name, description, batch_id, teacher_id, visibility, capacity) -> int:
        with self._lock:
            self._id += 1
            self._rows[self._id] = ClassRecord(
                class_id=self._id,
                name=name,
                description=description,
                batch_id=batch_id,
                visibility=visibility,
                capacity=capacity,
                roster=frozenset(),
                is_active=True,
                created_at=datetime(2024, 1, 1, 8, 0) + timedelta(minutes=self._id),
                teacher_id=teacher_id,
            )
            return self._id

    def get_by_id(self, class_id: int) -> Optional[ClassRecord]:
        with self._lock:
            return self._rows.get(int(class_id))

    def find_by_batch_and_name(self, *, batch_id: int, name: str) -> Optional[ClassRecord]:
        with self._lock:
            for c in self._rows.values():
                if c.batch_id == batch_id and c.name == name and c.is_active:
                    return c
        return None

    def list_by_batch(self, *, batch_id: int, include_inactive: bool = False) -> Sequence[ClassRecord]:
        with self._lock:
            rows = [c for c in self._rows.values() if c.batch_id == batch_id and (include_inactive or c.is_active)]
        return sorted(rows, key=lambda c: c.created_at, reverse=True)

    def list_by_batches(self, *, batch_ids: Iterable[int]) -> Sequence[ClassRecord]:
        ids = set(batch_ids)
        with self._lock:
            return [c for c in self._rows.values() if c.batch_id in ids and c.is_active]

    def list_by_teacher(self, *, teacher_id: int) -> Sequence[ClassRecord]:
        with self._lock:
            return [c for c in self._rows.values() if c.teacher_id == teacher_id]

    def list_for_student(self, *, student_id: int) -> Sequence[ClassRecord]:
        with self._lock:
            return [c for c in self._rows.values() if student_id in c.roster]

    def update_fields(self, *, class_id: int, fields: dict, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            current = self._rows.get(class_id)
            if not current or (expected_version is not None and current.version != expected_version):
                return False
            self._rows[class_id] = replace(current, version=current.version + 1, **fields)
            return True

    def write_roster(self, *, class_id: int, add=(), remove=(), expected_version: int) -> bool:
        with self._lock:
            current = self._rows.get(class_id)
            if not current or current.version != expected_version:
                return False
            roster = (set(current.roster) | set(add)) - set(remove)
            self._rows[class_id] = replace(current, roster=frozenset(roster), version=current.version + 1)
            self.roster_writes += 1
            return True

    def delete(self, *, class_id: int) -> bool:
        with self._lock:
            return self._rows.pop(class_id, None) is not None


class InMemoryJoinRequests:
    def __init__(self, clock=None):
        self._lock = threading.Lock()
        self._rows: dict[int, JoinRequest] = {}
        self._id = 0
        self.clock = clock or datetime.now

    def create(self, *, class_id: int, student_id: int, request_message: Optional[str]) -> Optional[int]:
        with self._lock:
            for r in self._rows.values():
                if r.class_id == class_id and r.student_id == student_id and r.is_pending:
                    return None
            self._id += 1
            self._rows[self._id] = JoinRequest(
                request_id=self._id,
                class_id=class_id,
                student_id=student_id,
                status=JoinRequestStatus.PENDING,
                requested_at=self.clock(),
                request_message=request_message,
            )
            return self._id

    def get(self, *, request_id: int) -> Optional[JoinRequest]:
        return self._rows.get(request_id)

    def get_many(self, *, request_ids: Iterable[int]) -> Sequence[JoinRequest]:
        return [self._rows[i] for i in request_ids if i in self._rows]

    def find_pending(self, *, class_id: int, student_id: int) -> Optional[JoinRequest]:
        for r in self._rows.values():
            if r.class_id == class_id and r.student_id == student_id and r.is_pending:
                return r
        return None

    def latest_for(self, *, class_id: int, student_id: int) -> Optional[JoinRequest]:
        rows = [r for r in self._rows.values() if r.class_id == class_id and r.student_id == student_id]
        return max(rows, key=lambda r: (r.requested_at, r.request_id)) if rows else None

    def list(self, *, class_id=None, student_id=None, status=None, limit: int = 200) -> Sequence[JoinRequest]:
        rows = [
            r
            for r in self._rows.values()
            if (class_id is None or r.class_id == class_id)
            and (student_id is None or r.student_id == student_id)
            and (status is None or r.status == status)
        ]
        rows.sort(key=lambda r: r.request_id, reverse=True)
        return rows[:limit]

    def decide(self, *, request_id: int, status, reviewed_by, review_message=None) -> bool:
        with self._lock:
            r = self._rows.get(request_id)
            if not r or not r.is_pending:
                return False
            self._rows[request_id] = replace(
                r,
                status=status,
                reviewed_by=reviewed_by,
                reviewed_at=self.clock(),
                review_message=review_message,
            )
            return True

    def delete_pending(self, *, request_id: int, student_id: int) -> bool:
        with self._lock:
            r = self._rows.get(request_id)
            if not r or r.student_id != student_id or not r.is_pending:
                return False
            del self._rows[request_id]
            return True

    def delete_for_class(self, *, class_id: int) -> int:
        with self._lock:
            ids = [i for i, r in self._rows.items() if r.class_id == class_id]
            for i in ids:
                del self._rows[i]
            return len(ids)


class InMemoryAttendance:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[int, AttendanceRecord] = {}
        self._id = 0

    def create_record(self, *, class_id, session_date, session_time, snapshot, marked_by=None) -> Optional[int]:
        with self._lock:
            if self._find(class_id, session_date, session_time):
                return None
            self._id += 1
            now = datetime(2024, 1, 1, 8, 0)
            self._rows[self._id] = AttendanceRecord(
                record_id=self._id,
                class_id=class_id,
                session_date=session_date,
                session_time=session_time,
                status=RecordStatus.DRAFT,
                snapshot=tuple(snapshot),
                entries={},
                counts=AttendanceCounts(total=len(snapshot)),
                marked_by=marked_by,
                created_at=now,
                updated_at=now,
            )
            return self._id

    def _find(self, class_id, session_date, session_time) -> Optional[AttendanceRecord]:
        for r in self._rows.values():
            if (r.class_id, r.session_date, r.session_time) == (class_id, session_date, session_time):
                return r
        return None

    def get(self, *, record_id: int) -> Optional[AttendanceRecord]:
        return self._rows.get(record_id)

    def find_session(self, *, class_id, session_date, session_time) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._find(class_id, session_date, session_time)

    def list_for_class(self, *, class_id: int, start: Optional[date] = None, end: Optional[date] = None):
        rows = [
            r
            for r in self._rows.values()
            if r.class_id == class_id
            and (start is None or r.session_date >= start)
            and (end is None or r.session_date <= end)
        ]
        return sorted(rows, key=lambda r: (r.session_date, r.record_id), reverse=True)

    def write_entries(self, *, record_id, marks, marked_at) -> bool:
        with self._lock:
            r = self._rows.get(record_id)
            if not r or r.status != RecordStatus.DRAFT:
                return False
            entries = dict(r.entries)
            for sid, status, note in marks:
                entries[sid] = AttendanceEntry(student_id=sid, status=status, note=note, marked_at=marked_at)
            counts = aggregate(entries.values(), len(r.snapshot))
            self._rows[record_id] = replace(r, entries=entries, counts=counts, updated_at=marked_at)
            return True

    def finalize(self, *, record_id: int, finalized_at: datetime) -> bool:
        with self._lock:
            r = self._rows.get(record_id)
            if not r or r.status != RecordStatus.DRAFT:
                return False
            self._rows[record_id] = replace(r, status=RecordStatus.FINAL, finalized_at=finalized_at)
            return True

    def update_session(self, *, record_id: int, session_date: date, session_time: str) -> bool:
        with self._lock:
            r = self._rows.get(record_id)
            if not r or r.status != RecordStatus.DRAFT:
                return False
            clash = self._find(r.class_id, session_date, session_time)
            if clash and clash.record_id != record_id:
                raise DuplicateSessionError("Attendance already exists for this date and session time")
            self._rows[record_id] = replace(r, session_date=session_date, session_time=session_time)
            return True

    def delete(self, *, record_id: int) -> bool:
        with self._lock:
            return self._rows.pop(record_id, None) is not None

    def delete_for_class(self, *, class_id: int) -> int:
        with self._lock:
            ids = [i for i, r in self._rows.items() if r.class_id == class_id]
            for i in ids:
                del self._rows[i]
            return len(ids)


class StaticBatches:
    def __init__(self, members: dict[int, set[int]]):
        self.members = members

    def batch_exists(self, batch_id: int) -> bool:
        return batch_id in self.members

    def students_in_batch(self, batch_id: int) -> Sequence[int]:
        return sorted(self.members.get(batch_id, set()))

    def batches_of_student(self, student_id: int) -> Sequence[int]:
        return [b for b, ids in self.members.items() if student_id in ids]


class StaticUsers:
    def __init__(self, profiles: dict):
        self.profiles = profiles

    def get_profiles(self, user_ids):
        return {i: self.profiles[i] for i in user_ids if i in self.profiles}


class RecordingEvents:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event: str, **fields) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [e for e, _ in self.events]
