from __future__ import annotations

from flask import Flask, request

from ..common.web import current_user_id, id_list, json_body, ok, ok_list, roles_required
from ..core.enums import Role
from ..container import Container

_STAFF = (Role.TEACHER, Role.ADMIN)


def register(app: Flask, container: Container) -> None:
    queue = container.join_request_queue

    # -------- Student --------
    @app.route("/api/classes/<int:class_id>/join-requests", methods=["POST"], endpoint="request_join")
    @roles_required(Role.STUDENT)
    def request_join(class_id: int):
        req = queue.request_join(class_id, current_user_id(), message=json_body().get("message"))
        return ok(req.to_dict(), 201, message="Join request sent successfully")

    @app.route("/api/classes/<int:class_id>/eligibility", methods=["GET"], endpoint="join_eligibility")
    @roles_required(Role.STUDENT)
    def join_eligibility(class_id: int):
        return ok(queue.check_eligibility(class_id, current_user_id()).to_dict())

    @app.route("/api/join-requests/mine", methods=["GET"], endpoint="my_join_requests")
    @roles_required(Role.STUDENT)
    def my_join_requests():
        return ok_list(queue.list_for_student(current_user_id()))

    @app.route("/api/join-requests/<int:request_id>", methods=["DELETE"], endpoint="cancel_join_request")
    @roles_required(Role.STUDENT)
    def cancel_join_request(request_id: int):
        queue.cancel(request_id, current_user_id())
        return ok(message="Join request cancelled")

    # -------- Teacher / admin --------
    @app.route("/api/classes/<int:class_id>/join-requests", methods=["GET"], endpoint="class_join_requests")
    @roles_required(*_STAFF)
    def class_join_requests(class_id: int):
        if request.args.get("status") == "all":
            return ok_list(queue.list_for_class(class_id))
        return ok_list(queue.list_pending(class_id))

    @app.route("/api/join-requests/<int:request_id>/approve", methods=["POST"], endpoint="approve_join_request")
    @roles_required(*_STAFF)
    def approve_join_request(request_id: int):
        req = queue.approve(request_id, reviewer_id=current_user_id(), message=json_body().get("message"))
        return ok(req.to_dict(), message="Join request approved")

    @app.route("/api/join-requests/<int:request_id>/reject", methods=["POST"], endpoint="reject_join_request")
    @roles_required(*_STAFF)
    def reject_join_request(request_id: int):
        req = queue.reject(request_id, reviewer_id=current_user_id(), message=json_body().get("message"))
        return ok(req.to_dict(), message="Join request rejected")

    @app.route("/api/join-requests/bulk-approve", methods=["POST"], endpoint="bulk_approve_join_requests")
    @roles_required(*_STAFF)
    def bulk_approve_join_requests():
        data = json_body()
        result = queue.bulk_approve(id_list(data, "request_ids"), reviewer_id=current_user_id(), message=data.get("message"))
        return ok(result.to_dict(), message=f"{len(result.approved)} request(s) approved")

    @app.route("/api/join-requests/bulk-reject", methods=["POST"], endpoint="bulk_reject_join_requests")
    @roles_required(*_STAFF)
    def bulk_reject_join_requests():
        data = json_body()
        rejected = queue.bulk_reject(id_list(data, "request_ids"), reviewer_id=current_user_id(), message=data.get("message"))
        return ok({"rejected": list(rejected)}, message=f"{len(rejected)} request(s) rejected")
