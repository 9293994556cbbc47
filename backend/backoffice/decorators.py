# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

OWNER_HEADER = "X-Owner-Id"


def require_owner(f):
    """
    Require an identity context and expose it to the route.

    The upstream authentication layer forwards the authenticated subject as
    an opaque identifier in the X-Owner-Id header. Sets:
    - g.owner_id: the subject every read and write is scoped to

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        owner_id = (request.headers.get(OWNER_HEADER) or "").strip()
        if not owner_id:
            return jsonify({"error": "Identity context required"}), 401
        if len(owner_id) > 64:
            return jsonify({"error": "Invalid identity context"}), 401

        g.owner_id = owner_id
        return f(*args, **kwargs)

    return decorated_function
