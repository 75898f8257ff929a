from __future__ import annotations

from functools import wraps
from typing import Any, Iterable, Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from .datetime_utils import parse_optional_date


def login_required(view):
    """Identity comes from the session set by the external auth layer."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session or "role" not in session:
            return jsonify({"success": False, "error": "unauthorized", "message": "Please log in to continue"}), 401
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    allowed = {r.value for r in roles}

    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if session.get("role") not in allowed:
                raise AuthorizationError("You do not have permission to perform this action")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def current_user_id() -> int:
    return int(session["user_id"])


def current_role() -> Optional[Role]:
    try:
        return Role(session.get("role"))
    except ValueError:
        return None


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def id_list(data: dict, key: str) -> list[Any]:
    value = data.get(key)
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list", field=key)
    return value


def date_range_args() -> tuple:
    return (
        parse_optional_date(request.args.get("start_date"), "start_date"),
        parse_optional_date(request.args.get("end_date"), "end_date"),
    )


def ok(payload: Optional[dict] = None, status: int = 200, **extra):
    body = {"success": True}
    if payload is not None:
        body["data"] = payload
    body.update(extra)
    return jsonify(body), status


def ok_list(items: Iterable, status: int = 200):
    data = [i.to_dict() if hasattr(i, "to_dict") else i for i in items]
    return jsonify({"success": True, "count": len(data), "data": data}), status
