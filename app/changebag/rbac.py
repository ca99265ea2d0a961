from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.changebag.models import User

PERMISSIONS: dict[str, str] = {
    "causes.create": "Causes: create",
    "causes.moderate": "Causes: moderate",
    "sponsorships.review": "Sponsorships: review",
    "claims.manage": "Claims: manage",
    "distribution.manage": "Distribution: manage",
    "payments.use": "Payments: create orders",
    "waitlist.manage": "Waitlist: manage",
    "dashboard.view": "Admin dashboard: view",
    "settings.manage": "Settings: manage",
    "partners.manage": "API partners: manage",
}

ROLE_PERMISSIONS: dict[str, tuple[str, tuple[str, ...]]] = {
    "admin": ("Administrator", tuple(PERMISSIONS)),
    "sponsor": ("Sponsor", ("causes.create", "payments.use")),
    "claimer": ("Claimer", ()),
}


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = current_user()
        if not user or not user.is_active:
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user()
            # Unauthenticated -> 401 so the SPA can send the user to login.
            if not user or not user.is_active:
                abort(401)
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
