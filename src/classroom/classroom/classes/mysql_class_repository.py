from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import Visibility
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import ClassRecord
from .repository import ClassRepository

_COLUMNS = """
    c.class_id, c.name, c.description, c.batch_id, c.teacher_id, c.visibility,
    c.capacity, c.is_active, c.version, c.created_at
"""

_UPDATABLE = {"name", "description", "visibility", "capacity", "is_active"}


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        name: str,
        description: Optional[str],
        batch_id: int,
        teacher_id: Optional[int],
        visibility: Visibility,
        capacity: Optional[int],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO classes(name, description, batch_id, teacher_id, visibility, capacity)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (name, description, int(batch_id), teacher_id, visibility.value, capacity),
            )
            return int(cur.lastrowid)

    def get_by_id(self, class_id: int) -> Optional[ClassRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM classes c WHERE c.class_id=%s", (int(class_id),))
            r = fetchone(cur)
            if not r:
                return None
            return self._hydrate(cur, [r])[0]

    def find_by_batch_and_name(self, *, batch_id: int, name: str) -> Optional[ClassRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM classes c WHERE c.batch_id=%s AND c.name=%s AND c.is_active=1",
                (int(batch_id), name),
            )
            r = fetchone(cur)
            if not r:
                return None
            return self._hydrate(cur, [r])[0]

    def list_by_batch(self, *, batch_id: int, include_inactive: bool = False) -> Sequence[ClassRecord]:
        active = "" if include_inactive else " AND c.is_active=1"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM classes c WHERE c.batch_id=%s{active} ORDER BY c.created_at DESC",
                (int(batch_id),),
            )
            return self._hydrate(cur, fetchall(cur))

    def list_by_batches(self, *, batch_ids: Iterable[int]) -> Sequence[ClassRecord]:
        ids = sorted({int(b) for b in batch_ids})
        if not ids:
            return []
        placeholders, params = in_clause(ids)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM classes c
                WHERE c.batch_id IN ({placeholders}) AND c.is_active=1
                ORDER BY c.created_at DESC
                """,
                tuple(params),
            )
            return self._hydrate(cur, fetchall(cur))

    def list_by_teacher(self, *, teacher_id: int) -> Sequence[ClassRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM classes c WHERE c.teacher_id=%s ORDER BY c.created_at DESC",
                (int(teacher_id),),
            )
            return self._hydrate(cur, fetchall(cur))

    def list_for_student(self, *, student_id: int) -> Sequence[ClassRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM classes c
                JOIN class_members m ON m.class_id = c.class_id
                WHERE m.student_id=%s
                ORDER BY c.created_at DESC
                """,
                (int(student_id),),
            )
            return self._hydrate(cur, fetchall(cur))

    def update_fields(self, *, class_id: int, fields: dict, expected_version: Optional[int] = None) -> bool:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported class fields: {sorted(unknown)}")
        if not fields:
            return True

        assignments: list[str] = []
        params: list[object] = []
        for col, value in fields.items():
            assignments.append(f"{col}=%s")
            params.append(value.value if isinstance(value, Visibility) else value)
        assignments.append("version=version+1")

        where = "class_id=%s"
        params.append(int(class_id))
        if expected_version is not None:
            where += " AND version=%s"
            params.append(int(expected_version))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE classes SET {', '.join(assignments)} WHERE {where}", tuple(params))
            return cur.rowcount > 0

    def write_roster(
        self,
        *,
        class_id: int,
        add: Sequence[int] = (),
        remove: Sequence[int] = (),
        expected_version: int,
    ) -> bool:
        # Version bump and membership rows share one transaction.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE classes SET version=version+1 WHERE class_id=%s AND version=%s",
                (int(class_id), int(expected_version)),
            )
            if cur.rowcount == 0:
                return False

            if add:
                cur.executemany(
                    "INSERT INTO class_members(class_id, student_id) VALUES(%s,%s)",
                    [(int(class_id), int(s)) for s in add],
                )
            if remove:
                placeholders, params = in_clause(int(s) for s in remove)
                cur.execute(
                    f"DELETE FROM class_members WHERE class_id=%s AND student_id IN ({placeholders})",
                    (int(class_id), *params),
                )
            return True

    def delete(self, *, class_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM classes WHERE class_id=%s", (int(class_id),))
            return cur.rowcount > 0

    def _hydrate(self, cur, rows: list[dict]) -> list[ClassRecord]:
        if not rows:
            return []

        placeholders, params = in_clause(int(r["class_id"]) for r in rows)
        cur.execute(
            f"SELECT class_id, student_id FROM class_members WHERE class_id IN ({placeholders})",
            tuple(params),
        )
        members: dict[int, set[int]] = {}
        for m in fetchall(cur):
            members.setdefault(int(m["class_id"]), set()).add(int(m["student_id"]))

        return [
            ClassRecord(
                class_id=int(r["class_id"]),
                name=r["name"],
                description=r.get("description"),
                batch_id=int(r["batch_id"]),
                teacher_id=int(r["teacher_id"]) if r.get("teacher_id") is not None else None,
                visibility=Visibility(r["visibility"]),
                capacity=int(r["capacity"]) if r.get("capacity") is not None else None,
                roster=frozenset(members.get(int(r["class_id"]), set())),
                is_active=bool(r["is_active"]),
                created_at=r["created_at"],
                version=int(r["version"]),
            )
            for r in rows
        ]
