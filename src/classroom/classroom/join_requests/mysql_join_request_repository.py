from __future__ import annotations

from typing import Iterable, Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..core.enums import JoinRequestStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import JoinRequest
from .repository import JoinRequestRepository

_COLUMNS = """
    request_id, class_id, student_id, status, request_message, requested_at,
    reviewed_by, reviewed_at, review_message
"""


def _row_to_request(r: dict) -> JoinRequest:
    return JoinRequest(
        request_id=int(r["request_id"]),
        class_id=int(r["class_id"]),
        student_id=int(r["student_id"]),
        status=JoinRequestStatus(r["status"]),
        requested_at=r["requested_at"],
        request_message=r.get("request_message"),
        reviewed_by=int(r["reviewed_by"]) if r.get("reviewed_by") is not None else None,
        reviewed_at=r.get("reviewed_at"),
        review_message=r.get("review_message"),
    )


class MySQLJoinRequestRepository(JoinRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, *, class_id: int, student_id: int, request_message: Optional[str]) -> Optional[int]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "INSERT INTO class_join_requests(class_id, student_id, request_message) VALUES(%s,%s,%s)",
                    (int(class_id), int(student_id), request_message),
                )
                return int(cur.lastrowid)
        except IntegrityError as e:
            if e.errno == errorcode.ER_DUP_ENTRY:
                return None
            raise

    def get(self, *, request_id: int) -> Optional[JoinRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM class_join_requests WHERE request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _row_to_request(r) if r else None

    def get_many(self, *, request_ids: Iterable[int]) -> Sequence[JoinRequest]:
        ids = sorted({int(i) for i in request_ids})
        if not ids:
            return []
        placeholders, params = in_clause(ids)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM class_join_requests WHERE request_id IN ({placeholders})",
                tuple(params),
            )
            return [_row_to_request(r) for r in fetchall(cur)]

    def find_pending(self, *, class_id: int, student_id: int) -> Optional[JoinRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM class_join_requests
                WHERE class_id=%s AND student_id=%s AND status='pending'
                LIMIT 1
                """,
                (int(class_id), int(student_id)),
            )
            r = fetchone(cur)
            return _row_to_request(r) if r else None

    def latest_for(self, *, class_id: int, student_id: int) -> Optional[JoinRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM class_join_requests
                WHERE class_id=%s AND student_id=%s
                ORDER BY requested_at DESC, request_id DESC
                LIMIT 1
                """,
                (int(class_id), int(student_id)),
            )
            r = fetchone(cur)
            return _row_to_request(r) if r else None

    def list(
        self,
        *,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
        status: Optional[JoinRequestStatus] = None,
        limit: int = 200,
    ) -> Sequence[JoinRequest]:
        where = ["1=1"]
        params: list[object] = []
        if class_id is not None:
            where.append("class_id=%s")
            params.append(int(class_id))
        if student_id is not None:
            where.append("student_id=%s")
            params.append(int(student_id))
        if status is not None:
            where.append("status=%s")
            params.append(status.value)
        params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM class_join_requests
                WHERE {' AND '.join(where)}
                ORDER BY requested_at DESC, request_id DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [_row_to_request(r) for r in fetchall(cur)]

    def decide(
        self,
        *,
        request_id: int,
        status: JoinRequestStatus,
        reviewed_by: Optional[int],
        review_message: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE class_join_requests
                SET status=%s, reviewed_by=%s, reviewed_at=NOW(), review_message=%s
                WHERE request_id=%s AND status='pending'
                """,
                (status.value, reviewed_by, review_message, int(request_id)),
            )
            return cur.rowcount > 0

    def delete_pending(self, *, request_id: int, student_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM class_join_requests WHERE request_id=%s AND student_id=%s AND status='pending'",
                (int(request_id), int(student_id)),
            )
            return cur.rowcount > 0

    def delete_for_class(self, *, class_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM class_join_requests WHERE class_id=%s", (int(class_id),))
            return int(cur.rowcount)
