from __future__ import annotations

from flask import Flask

from ..common.web import current_role, current_user_id, date_range_args, json_body, ok, ok_list, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container

_STAFF = (Role.TEACHER, Role.ADMIN)


def register(app: Flask, container: Container) -> None:
    store = container.attendance_store
    reports = container.attendance_report_service

    @app.route("/api/classes/<int:class_id>/attendance", methods=["POST"], endpoint="create_attendance")
    @roles_required(*_STAFF)
    def create_attendance(class_id: int):
        data = json_body()
        record = store.create_draft(
            class_id,
            data.get("session_date"),
            data.get("session_time"),
            marked_by=current_user_id(),
        )
        return ok(record.to_dict(), 201, message="Attendance draft created")

    @app.route("/api/classes/<int:class_id>/attendance", methods=["GET"], endpoint="list_attendance")
    @roles_required(*_STAFF)
    def list_attendance(class_id: int):
        start, end = date_range_args()
        records = store.list_for_class(class_id, start=start, end=end)
        return ok_list([r.to_dict(include_entries=False) for r in records])

    @app.route("/api/classes/<int:class_id>/attendance/date/<session_date>", methods=["GET"], endpoint="attendance_by_date")
    @roles_required(*_STAFF)
    def attendance_by_date(class_id: int, session_date: str):
        return ok_list(store.get_by_date(class_id, session_date))

    @app.route("/api/classes/<int:class_id>/attendance/stats", methods=["GET"], endpoint="class_attendance_stats")
    @roles_required(*_STAFF)
    def class_attendance_stats(class_id: int):
        start, end = date_range_args()
        return ok(reports.class_stats(class_id, start=start, end=end).to_dict())

    @app.route("/api/classes/<int:class_id>/attendance/me", methods=["GET"], endpoint="my_attendance")
    @roles_required(Role.STUDENT)
    def my_attendance(class_id: int):
        start, end = date_range_args()
        return ok_list(store.list_for_student(class_id, current_user_id(), start=start, end=end))

    @app.route("/api/classes/<int:class_id>/attendance/me/stats", methods=["GET"], endpoint="my_attendance_stats")
    @roles_required(Role.STUDENT)
    def my_attendance_stats(class_id: int):
        start, end = date_range_args()
        return ok(reports.student_stats(class_id, current_user_id(), start=start, end=end).to_dict())

    @app.route("/api/attendance/<int:record_id>", methods=["GET"], endpoint="get_attendance")
    @roles_required(*_STAFF)
    def get_attendance(record_id: int):
        return ok(store.get(record_id).to_dict())

    @app.route("/api/attendance/<int:record_id>", methods=["PATCH"], endpoint="update_attendance_session")
    @roles_required(*_STAFF)
    def update_attendance_session(record_id: int):
        data = json_body()
        record = store.update_session(
            record_id,
            session_date=data.get("session_date"),
            session_time=data.get("session_time"),
        )
        return ok(record.to_dict(), message="Attendance session updated")

    @app.route("/api/attendance/<int:record_id>/students/<int:student_id>", methods=["PUT"], endpoint="mark_attendance")
    @roles_required(*_STAFF)
    def mark_attendance(record_id: int, student_id: int):
        data = json_body()
        record = store.mark_status(record_id, student_id, data.get("status"), note=data.get("note"))
        return ok(record.to_dict())

    @app.route("/api/attendance/<int:record_id>/marks", methods=["PUT"], endpoint="mark_attendance_many")
    @roles_required(*_STAFF)
    def mark_attendance_many(record_id: int):
        rows = json_body().get("marks")
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ValidationError("marks must be a list of {student_id, status, note}", field="marks")
        marks = {r.get("student_id"): (r.get("status"), r.get("note")) for r in rows}
        if len(marks) != len(rows):
            raise ValidationError("Each student can only be marked once per request", field="marks")
        return ok(store.mark_many(record_id, marks).to_dict())

    @app.route("/api/attendance/<int:record_id>/submit", methods=["POST"], endpoint="submit_attendance")
    @roles_required(*_STAFF)
    def submit_attendance(record_id: int):
        return ok(store.submit(record_id).to_dict(), message="Attendance submitted")

    @app.route("/api/attendance/<int:record_id>", methods=["DELETE"], endpoint="delete_attendance")
    @roles_required(*_STAFF)
    def delete_attendance(record_id: int):
        store.delete(record_id, current_role=current_role())
        return ok(message="Attendance record deleted")
