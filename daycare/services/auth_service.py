"""
Authentication service for user management.

Handles password login, self-registration and the email verification flow.
"""
import logging
from typing import Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from daycare.exceptions import BadRequestError, ConflictError, UnauthorizedError
from daycare.models import Tenant, User, UserRole
from daycare.services import credential_service, email_service
from daycare.utils.dates import hours_from_now, iso, utcnow

logger = logging.getLogger(__name__)


def serialize_user(user: User) -> dict:
    """User payload returned by login, register and /me."""
    data = {
        'id': user.id,
        'email': user.email,
        'firstName': user.first_name,
        'lastName': user.last_name,
        'role': user.role,
        'tenantId': user.tenant_id,
        'emailVerified': user.email_verified,
        'tenant': user.tenant.summary() if user.tenant else None,
    }
    return data


def find_user_by_email(session, email: str) -> Optional[User]:
    return session.query(User).filter(
        func.lower(User.email) == email.strip().lower()
    ).first()


def login(session, email: str, password: str, tenant_subdomain: Optional[str] = None) -> dict:
    """
    Validate credentials and issue a JWT.

    A user with a pending staff invitation gets a dedicated error instead of
    the generic invalid-credentials one: they have no password yet.

    Raises:
        UnauthorizedError: On any authentication failure
    """
    user = find_user_by_email(session, email)

    if user and user.is_pending_invitation():
        logger.warning(f"Login attempt for pending invitation: {user.email}")
        raise UnauthorizedError('Please accept your invitation before logging in')

    if not user or not credential_service.verify_password(password, user.password_hash):
        raise UnauthorizedError('Invalid credentials')

    if not user.is_active:
        raise UnauthorizedError('Account is deactivated')

    if not user.email_verified:
        raise UnauthorizedError('Please verify your email address before logging in')

    if tenant_subdomain and user.tenant_id:
        tenant = session.query(Tenant).filter_by(subdomain=tenant_subdomain.lower()).first()
        if not tenant or tenant.id != user.tenant_id:
            raise UnauthorizedError('User does not belong to this tenant')

    user.last_login_at = utcnow()
    session.commit()

    logger.info(f"User logged in: {user.email}")
    return {
        'access_token': credential_service.issue_token(user.id, user.email, user.role, user.tenant_id),
        'user': serialize_user(user),
    }


def register(
    session,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str,
    phone: Optional[str] = None,
    tenant_id: Optional[str] = None
) -> dict:
    """
    Self-registration. Creates an unverified user with a 24h verification
    token and sends the verification email after commit.

    Raises:
        BadRequestError: SUPER_ADMIN role, missing or unknown tenant
        ConflictError: If the email is already registered
    """
    if role == UserRole.SUPER_ADMIN.value:
        raise BadRequestError('Cannot register users with this role')

    if not tenant_id:
        raise BadRequestError('tenantId is required')

    if not session.query(Tenant).filter_by(id=tenant_id).first():
        raise BadRequestError('Tenant not found')

    if find_user_by_email(session, email):
        raise ConflictError('User with this email already exists')

    verification_token = credential_service.generate_opaque_token()
    user = User(
        email=email.strip().lower(),
        password_hash=credential_service.hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
        tenant_id=tenant_id,
        email_verified=False,
        email_verification_token=verification_token,
        email_verification_expiry=hours_from_now(current_app.config['EMAIL_VERIFICATION_TTL_HOURS']),
    )

    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError('User with this email already exists')

    logger.info(f"User registered (unverified): {user.email}")
    email_service.send_verification_email(user.email, user.first_name, verification_token)

    return {
        'message': 'Registration successful. Please check your email to verify your account.',
        'user': serialize_user(user),
    }


def verify_email(session, token: str) -> dict:
    """
    Mark the address as verified.

    Raises:
        BadRequestError: Unknown or expired token (same message for both)
    """
    user = None
    if token:
        user = session.query(User).filter(
            User.email_verification_token == token,
            User.email_verification_expiry > utcnow()
        ).first()

    if not user:
        raise BadRequestError('Invalid or expired verification token')

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expiry = None
    session.commit()

    logger.info(f"Email verified: {user.email}")
    return {
        'message': 'Email verified successfully',
        'user': {'id': user.id, 'email': user.email, 'emailVerified': True},
    }


def resend_verification_email(session, email: str) -> dict:
    """
    Issue a fresh verification token.

    Raises:
        BadRequestError: Unknown email or already verified
    """
    user = find_user_by_email(session, email or '')
    if not user:
        raise BadRequestError('User not found')

    if user.email_verified:
        raise BadRequestError('Email is already verified')

    user.email_verification_token = credential_service.generate_opaque_token()
    user.email_verification_expiry = hours_from_now(current_app.config['EMAIL_VERIFICATION_TTL_HOURS'])
    session.commit()

    email_service.send_verification_email(user.email, user.first_name, user.email_verification_token)
    return {'message': 'Verification email sent successfully'}


def get_profile(user: User) -> dict:
    """Current user payload for /auth/me."""
    data = serialize_user(user)
    data['phone'] = user.phone
    data['lastLoginAt'] = iso(user.last_login_at)
    return data
