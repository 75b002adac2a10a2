from __future__ import annotations

from functools import wraps

from flask import abort, g
from flask_login import current_user

PERMISSIONS = (
    "cemeteries.view",
    "cemeteries.structure.manage",
    "cemeteries.structure.delete",
    "cemeteries.graves.manage",
    "cemeteries.graves.delete",
    "cemeteries.burials.manage",
    "cemeteries.burials.delete",
    "cemeteries.concessions.manage",
    "cemeteries.concessions.delete",
    "cemeteries.payments.manage",
    "cemeteries.payments.delete",
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "admin": frozenset(PERMISSIONS),
    "operator": frozenset(p for p in PERMISSIONS if not p.endswith(".delete")),
    "viewer": frozenset({"cemeteries.view"}),
}


def has_permission(role: str | None, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get((role or "").lower(), frozenset())


def require_membership(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401)
        if getattr(g, "parish", None) is None:
            abort(403)
        return fn(*args, **kwargs)

    return wrapper


def require_permission(permission: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            membership = getattr(g, "membership", None)
            if membership is None:
                abort(403)
            if not has_permission(membership.role, permission):
                abort(403, description=f"Missing permission: {permission}")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
