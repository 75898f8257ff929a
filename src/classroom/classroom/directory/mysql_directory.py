from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import UserProfile
from .repository import BatchDirectory, UserDirectory


class MySQLBatchDirectory(BatchDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def batch_exists(self, batch_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT batch_id FROM batches WHERE batch_id=%s AND is_active=1", (int(batch_id),))
            return fetchone(cur) is not None

    def students_in_batch(self, batch_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id FROM batch_students WHERE batch_id=%s ORDER BY student_id",
                (int(batch_id),),
            )
            return [int(r["student_id"]) for r in fetchall(cur)]

    def batches_of_student(self, student_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT bs.batch_id
                FROM batch_students bs
                JOIN batches b ON b.batch_id = bs.batch_id
                WHERE bs.student_id=%s AND b.is_active=1
                """,
                (int(student_id),),
            )
            return [int(r["batch_id"]) for r in fetchall(cur)]


class MySQLUserDirectory(UserDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_profiles(self, user_ids: Iterable[int]) -> Mapping[int, UserProfile]:
        ids = sorted({int(u) for u in user_ids})
        if not ids:
            return {}

        placeholders, params = in_clause(ids)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT user_id, email, first_name, last_name FROM users WHERE user_id IN ({placeholders})",
                tuple(params),
            )
            return {
                int(r["user_id"]): UserProfile(
                    user_id=int(r["user_id"]),
                    email=r["email"],
                    first_name=r.get("first_name"),
                    last_name=r.get("last_name"),
                )
                for r in fetchall(cur)
            }
