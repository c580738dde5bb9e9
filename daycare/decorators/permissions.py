"""
Permission decorators for role-based access control.
Extends the basic require_auth decorator with role checks.
"""

from functools import wraps
from flask import g
from daycare.exceptions import ForbiddenError, UnauthorizedError
from daycare.models import UserRole

STAFF_MANAGER_ROLES = frozenset({UserRole.BUSINESS_ADMIN.value, UserRole.SUPER_ADMIN.value})
INVITABLE_ROLES = frozenset({UserRole.BUSINESS_ADMIN.value, UserRole.EDUCATOR.value})


def can_manage_staff(role) -> bool:
    """Only business admins and super admins invite, resend or cancel staff invitations."""
    return isinstance(role, str) and role in STAFF_MANAGER_ROLES


def can_be_invited(role) -> bool:
    """Parents join through enrollment and super admins through the CLI, never by invitation."""
    return isinstance(role, str) and role in INVITABLE_ROLES


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('SUPER_ADMIN')
        @require_role('BUSINESS_ADMIN', 'SUPER_ADMIN')

    Must be used AFTER require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not g.get('user'):
                raise UnauthorizedError('Authentication required')

            if g.get('user_role') not in allowed_roles:
                raise ForbiddenError('You do not have permission to perform this action')

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def staff_managers_only(f):
    """
    Shortcut decorator for routes gated by can_manage_staff.

    Usage:
        @staff_managers_only
        def invite_staff():
            ...
    """
    return require_role(*STAFF_MANAGER_ROLES)(f)


def super_admin_only(f):
    return require_role(UserRole.SUPER_ADMIN.value)(f)
