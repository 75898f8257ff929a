from __future__ import annotations

from flask import Flask

from ..common.web import current_user_id, id_list, json_body, ok, roles_required
from ..core.enums import Role
from ..container import Container


def register(app: Flask, container: Container) -> None:
    enrollment = container.enrollment_coordinator

    @app.route("/api/classes/<int:class_id>/join", methods=["POST"], endpoint="join_class")
    @roles_required(Role.STUDENT)
    def join_class(class_id: int):
        result = enrollment.join_open(class_id, current_user_id())
        return ok(result.to_dict(), message="Successfully joined the class")

    @app.route("/api/classes/<int:class_id>/leave", methods=["POST"], endpoint="leave_class")
    @roles_required(Role.STUDENT)
    def leave_class(class_id: int):
        result = enrollment.leave(class_id, current_user_id())
        return ok(result.to_dict(), message="You have left the class")

    @app.route("/api/classes/<int:class_id>/students", methods=["POST"], endpoint="add_students")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def add_students(class_id: int):
        result = enrollment.add_students(class_id, id_list(json_body(), "student_ids"))
        return ok(result.to_dict(), message=f"{len(result.added)} student(s) added")

    @app.route("/api/classes/<int:class_id>/students/<int:student_id>", methods=["DELETE"], endpoint="remove_student")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def remove_student(class_id: int, student_id: int):
        result = enrollment.remove_student(class_id, student_id)
        return ok(result.to_dict(), message="Student removed from the class")
