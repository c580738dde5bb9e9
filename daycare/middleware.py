"""Middleware for bearer authentication and tenant context."""
from functools import wraps
from flask import g, request, current_app
from daycare.database import get_session
from daycare.exceptions import UnauthorizedError, ForbiddenError
from daycare.models import User


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_user_and_tenant():
    """
    Load current user and tenant into g (Flask's per-request global).

    Called before each request. Sets g.user, g.user_id, g.tenant_id and
    g.user_role when a valid Bearer JWT is present. An invalid or expired
    token leaves the context empty and the reason in g.auth_error, so public
    endpoints keep working and protected ones reject with 401.
    """
    g.user = None
    g.user_id = None
    g.tenant_id = None
    g.user_role = None
    g.auth_error = None

    token = _bearer_token()
    if not token:
        return

    from daycare.services.credential_service import decode_token

    try:
        payload = decode_token(token)
    except UnauthorizedError as e:
        g.auth_error = e.message
        return

    db_session = get_session()
    user = db_session.query(User).filter_by(id=payload.get('sub')).first()
    if not user or not user.is_active:
        g.auth_error = 'User not found or deactivated'
        return

    g.user = user
    g.user_id = user.id
    g.user_role = user.role
    # The token's tenant claim is informational; the stored row is authoritative
    g.tenant_id = user.tenant_id
    if payload.get('tenantId') and payload.get('tenantId') != user.tenant_id:
        current_app.logger.warning(f"JWT tenant claim mismatch for user {user.id}")


def require_auth(f):
    """
    Decorator: Require a valid Bearer JWT.

    Raises UnauthorizedError (401 JSON) when no user could be loaded.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError(g.get('auth_error') or 'Authentication required')
        return f(*args, **kwargs)
    return decorated_function


def require_tenant(f):
    """
    Decorator: Require the authenticated user to belong to a tenant.

    Must be used AFTER require_auth. SUPER_ADMIN users have no tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('tenant_id') is None:
            raise ForbiddenError('This action requires a tenant account')
        return f(*args, **kwargs)
    return decorated_function
