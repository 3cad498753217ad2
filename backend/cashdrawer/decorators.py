# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import MissingActor
from .services.audit import Actor

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_NAME_HEADER = "X-Actor-Name"


def require_actor(f):
    """
    Require an acting user and expose it as g.actor.

    Authentication happens upstream; this layer only needs the identity the
    caller acts as, for audit attribution. Returns 401 if either header is
    missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.actor = Actor.require(
                (request.headers.get(ACTOR_ID_HEADER), request.headers.get(ACTOR_NAME_HEADER)),
                shift_id=kwargs.get("shift_id"),
                operation=request.endpoint,
            )
        except MissingActor as e:
            return jsonify(e.to_dict()), 401

        return f(*args, **kwargs)

    return decorated_function
