from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..core.enums import AttendanceStatus, RecordStatus
from ..core.exceptions import DuplicateSessionError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .aggregator import aggregate
from .model import AttendanceCounts, AttendanceEntry, AttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, class_id, session_date, session_time, status,
    present_count, absent_count, late_count, excused_count, total_students,
    marked_by, created_at, updated_at, finalized_at
"""


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_record(
        self,
        *,
        class_id: int,
        session_date: date,
        session_time: str,
        snapshot: Sequence[int],
        marked_by: Optional[int] = None,
    ) -> Optional[int]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(class_id, session_date, session_time, total_students, marked_by)
                    VALUES(%s,%s,%s,%s,%s)
                    """,
                    (int(class_id), session_date, session_time, len(snapshot), marked_by),
                )
                record_id = int(cur.lastrowid)
                if snapshot:
                    cur.executemany(
                        "INSERT INTO attendance_entries(record_id, student_id) VALUES(%s,%s)",
                        [(record_id, int(s)) for s in snapshot],
                    )
                return record_id
        except IntegrityError as e:
            if e.errno == errorcode.ER_DUP_ENTRY:
                return None
            raise

    def get(self, *, record_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (int(record_id),))
            r = fetchone(cur)
            if not r:
                return None
            return self._hydrate(cur, [r])[0]

    def find_session(self, *, class_id: int, session_date: date, session_time: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE class_id=%s AND session_date=%s AND session_time=%s
                """,
                (int(class_id), session_date, session_time),
            )
            r = fetchone(cur)
            if not r:
                return None
            return self._hydrate(cur, [r])[0]

    def list_for_class(
        self,
        *,
        class_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        where = ["class_id=%s"]
        params: list[object] = [int(class_id)]
        if start:
            where.append("session_date >= %s")
            params.append(start)
        if end:
            where.append("session_date <= %s")
            params.append(end)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE {' AND '.join(where)}
                ORDER BY session_date DESC, created_at DESC
                """,
                tuple(params),
            )
            return self._hydrate(cur, fetchall(cur))

    def write_entries(
        self,
        *,
        record_id: int,
        marks: Sequence[tuple[int, AttendanceStatus, Optional[str]]],
        marked_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            # Row lock on the record: concurrent writes and finalize queue behind this transaction.
            cur.execute(
                "SELECT status FROM attendance_records WHERE record_id=%s FOR UPDATE",
                (int(record_id),),
            )
            r = fetchone(cur)
            if not r or r["status"] != RecordStatus.DRAFT.value:
                return False

            cur.executemany(
                """
                UPDATE attendance_entries SET status=%s, note=%s, marked_at=%s
                WHERE record_id=%s AND student_id=%s
                """,
                [(status.value, note, marked_at, int(record_id), int(sid)) for sid, status, note in marks],
            )
            self._store_counts(cur, int(record_id), marked_at)
            return True

    def _store_counts(self, cur, record_id: int, updated_at: datetime) -> None:
        cur.execute("SELECT status FROM attendance_entries WHERE record_id=%s", (record_id,))
        statuses = [e["status"] for e in fetchall(cur)]
        counts = aggregate(statuses, len(statuses))
        cur.execute(
            """
            UPDATE attendance_records
            SET present_count=%s, absent_count=%s, late_count=%s, excused_count=%s, total_students=%s, updated_at=%s
            WHERE record_id=%s
            """,
            (counts.present, counts.absent, counts.late, counts.excused, counts.total, updated_at, record_id),
        )

    def finalize(self, *, record_id: int, finalized_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records SET status='final', finalized_at=%s, updated_at=%s
                WHERE record_id=%s AND status='draft'
                """,
                (finalized_at, finalized_at, int(record_id)),
            )
            return cur.rowcount > 0

    def update_session(self, *, record_id: int, session_date: date, session_time: str) -> bool:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    UPDATE attendance_records SET session_date=%s, session_time=%s, updated_at=NOW()
                    WHERE record_id=%s AND status='draft'
                    """,
                    (session_date, session_time, int(record_id)),
                )
                return cur.rowcount > 0
        except IntegrityError as e:
            if e.errno == errorcode.ER_DUP_ENTRY:
                raise DuplicateSessionError(
                    "Attendance already exists for this date and session time",
                    field="session_time",
                )
            raise

    def delete(self, *, record_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE record_id=%s", (int(record_id),))
            return cur.rowcount > 0

    def delete_for_class(self, *, class_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE class_id=%s", (int(class_id),))
            return int(cur.rowcount)

    def _hydrate(self, cur, rows: list[dict]) -> list[AttendanceRecord]:
        if not rows:
            return []

        placeholders, params = in_clause(int(r["record_id"]) for r in rows)
        cur.execute(
            f"""
            SELECT record_id, student_id, status, note, marked_at
            FROM attendance_entries WHERE record_id IN ({placeholders})
            ORDER BY student_id
            """,
            tuple(params),
        )
        snapshots: dict[int, list[int]] = {}
        entries: dict[int, dict[int, AttendanceEntry]] = {}
        for e in fetchall(cur):
            rid, sid = int(e["record_id"]), int(e["student_id"])
            snapshots.setdefault(rid, []).append(sid)
            if e.get("status"):
                entries.setdefault(rid, {})[sid] = AttendanceEntry(
                    student_id=sid,
                    status=AttendanceStatus(e["status"]),
                    note=e.get("note"),
                    marked_at=e.get("marked_at"),
                )

        return [
            AttendanceRecord(
                record_id=int(r["record_id"]),
                class_id=int(r["class_id"]),
                session_date=r["session_date"],
                session_time=r["session_time"],
                status=RecordStatus(r["status"]),
                snapshot=tuple(snapshots.get(int(r["record_id"]), [])),
                entries=entries.get(int(r["record_id"]), {}),
                counts=AttendanceCounts(
                    present=int(r["present_count"]),
                    absent=int(r["absent_count"]),
                    late=int(r["late_count"]),
                    excused=int(r["excused_count"]),
                    total=int(r["total_students"]),
                ),
                marked_by=int(r["marked_by"]) if r.get("marked_by") is not None else None,
                created_at=r.get("created_at"),
                updated_at=r.get("updated_at"),
                finalized_at=r.get("finalized_at"),
            )
            for r in rows
        ]
