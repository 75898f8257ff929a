from __future__ import annotations

from flask import Flask, request

from ..common.web import current_role, current_user_id, json_body, login_required, ok, ok_list, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container
from .model import ClassPatch, NewClass

_STAFF = (Role.TEACHER, Role.ADMIN)


def _flag(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _patch_from(data: dict) -> ClassPatch:
    if "capacity" in data and data["capacity"] is None:
        clear_capacity = True
        capacity = None
    else:
        clear_capacity = _flag(data.get("clear_capacity"))
        capacity = data.get("capacity")

    is_active = data.get("is_active")
    if is_active is not None and not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean", field="is_active")

    return ClassPatch(
        name=data.get("name"),
        description=data.get("description"),
        visibility=data.get("visibility"),
        capacity=capacity,
        clear_capacity=clear_capacity,
        is_active=is_active,
        batch_id=data.get("batch_id"),
    )


def register(app: Flask, container: Container) -> None:
    registry = container.class_registry

    @app.route("/api/classes", methods=["POST"], endpoint="create_class")
    @roles_required(*_STAFF)
    def create_class():
        data = json_body()
        record = registry.create(
            NewClass(
                name=data.get("name"),
                batch_id=data.get("batch_id"),
                description=data.get("description"),
                visibility=data.get("visibility") or "open",
                capacity=data.get("capacity"),
                teacher_id=current_user_id(),
            )
        )
        return ok(record.to_dict(), 201, message="Class created successfully")

    @app.route("/api/classes/<int:class_id>", methods=["GET"], endpoint="get_class")
    @login_required
    def get_class(class_id: int):
        return ok(registry.get(class_id).to_dict())

    @app.route("/api/classes/<int:class_id>", methods=["PUT", "PATCH"], endpoint="update_class")
    @roles_required(*_STAFF)
    def update_class(class_id: int):
        record = registry.update(class_id, _patch_from(json_body()))
        return ok(record.to_dict(), message="Class updated successfully")

    @app.route("/api/classes/<int:class_id>", methods=["DELETE"], endpoint="delete_class")
    @roles_required(*_STAFF)
    def delete_class(class_id: int):
        result = registry.delete(
            class_id,
            cascade_attendance=_flag(request.args.get("cascade_attendance")),
            current_role=current_role(),
        )
        return ok(
            {
                "class_id": result.class_id,
                "join_requests_deleted": result.join_requests_deleted,
                "attendance_records_deleted": result.attendance_records_deleted,
            },
            message="Class deleted successfully",
        )

    @app.route("/api/batches/<int:batch_id>/classes", methods=["GET"], endpoint="list_batch_classes")
    @login_required
    def list_batch_classes(batch_id: int):
        include_inactive = _flag(request.args.get("include_inactive")) and current_role() in _STAFF
        return ok_list(registry.list_by_batch(batch_id, include_inactive=include_inactive))

    @app.route("/api/batches/<int:batch_id>/classes/by-name", methods=["GET"], endpoint="find_class_by_name")
    @login_required
    def find_class_by_name(batch_id: int):
        return ok(registry.find_by_batch_and_name(batch_id, request.args.get("name", "")).to_dict())

    @app.route("/api/classes/mine", methods=["GET"], endpoint="my_classes")
    @login_required
    def my_classes():
        if current_role() == Role.STUDENT:
            return ok_list(registry.list_joined(current_user_id()))
        return ok_list(registry.list_by_teacher(current_user_id()))

    @app.route("/api/classes/available", methods=["GET"], endpoint="available_classes")
    @roles_required(Role.STUDENT)
    def available_classes():
        return ok_list(registry.list_available_for_student(current_user_id()))

    @app.route("/api/classes/<int:class_id>/eligible-students", methods=["GET"], endpoint="eligible_students")
    @roles_required(*_STAFF)
    def eligible_students(class_id: int):
        return ok_list(registry.list_eligible_students(class_id))

    @app.route("/api/classes/<int:class_id>/members", methods=["GET"], endpoint="class_members")
    @login_required
    def class_members(class_id: int):
        return ok_list(registry.list_members(class_id))
