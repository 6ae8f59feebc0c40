# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.actor_service import Actor


USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"


def with_actor(f):
    """
    Establish the acting caller for the request.

    The upstream authentication layer sets:
    - X-User-Id: numeric id of the authenticated user
    - X-User-Role: role name (admin, manager, cashier, ...)

    Sets g.actor to an Actor. Both headers are optional here; services
    decide whether an acting user is required. A non-numeric user id is
    rejected with 400.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
        role = (request.headers.get(USER_ROLE_HEADER) or "").strip() or None

        user_id = None
        if raw_user_id:
            if not raw_user_id.isdigit():
                return jsonify({"error": f"{USER_ID_HEADER} must be numeric", "code": "invalid_request"}), 400
            user_id = int(raw_user_id)

        g.actor = Actor(user_id=user_id, role=role.lower() if role else None)
        return f(*args, **kwargs)

    return decorated_function
