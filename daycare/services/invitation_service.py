"""
Staff invitation lifecycle.

    NONE -> INVITED -> ACCEPTED
                    -> CANCELED (row deleted)
                    -> EXPIRED  (implicit: invitation_expires_at < now)

Expiry is evaluated when a token is used; nothing sweeps expired rows.
Invitation emails are best-effort: a delivery failure is logged and the
invitation stays in place so it can be resent.
"""
import logging
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from daycare.decorators.permissions import can_be_invited, can_manage_staff
from daycare.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from daycare.models import Classroom, StaffClassroomAssignment, Tenant, User, UserRole
from daycare.services import credential_service, email_service
from daycare.services.auth_service import find_user_by_email
from daycare.utils.dates import hours_from_now, iso, utcnow
from daycare.utils.validators import password_errors

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = 'Invalid or expired invitation token'


def _load_staff_manager(session, user_id: str, action: str) -> User:
    """
    Raises:
        ForbiddenError: If the acting user is unknown or cannot manage staff
    """
    actor = session.query(User).filter_by(id=user_id).first()
    if not actor or not can_manage_staff(actor.role):
        logger.warning(f"Forbidden {action} attempt by user {user_id}")
        raise ForbiddenError(f'Only business administrators can {action}')
    return actor


def _load_target(session, actor: User, target_user_id: str) -> User:
    """Target user, scoped to the actor's tenant unless the actor is SUPER_ADMIN."""
    query = session.query(User).filter(User.id == target_user_id)
    if actor.role != UserRole.SUPER_ADMIN.value:
        query = query.filter(User.tenant_id == actor.tenant_id)

    target = query.first()
    if not target:
        raise NotFoundError('User not found')
    return target


def _validate_classrooms(session, tenant_id: str, classroom_ids: List[str]) -> List[str]:
    """
    Raises:
        NotFoundError: If any id is not a classroom of the tenant
    """
    unique_ids = list(dict.fromkeys(classroom_ids))
    found = session.query(Classroom.id).filter(
        Classroom.id.in_(unique_ids),
        Classroom.tenant_id == tenant_id
    ).all()
    found_ids = {row[0] for row in found}

    missing = [cid for cid in unique_ids if cid not in found_ids]
    if missing:
        raise NotFoundError('Classroom not found', payload={'classroomIds': missing})
    return unique_ids


def _send_invitation(session, user: User, inviter: User) -> bool:
    tenant = session.query(Tenant).filter_by(id=user.tenant_id).first()
    tenant_name = tenant.name if tenant else 'your daycare'

    sent = email_service.send_staff_invitation_email(
        to_email=user.email,
        first_name=user.first_name,
        invitation_token=user.invitation_token,
        inviter_name=inviter.full_name,
        tenant_name=tenant_name
    )
    if not sent:
        logger.error(f"Invitation email could not be delivered to {user.email}; use resend to retry")
    return sent


def invite_staff(
    session,
    email: str,
    first_name: str,
    last_name: str,
    role: str,
    invited_by_user_id: str,
    tenant_id: Optional[str],
    phone: Optional[str] = None,
    classroom_ids: Optional[List[str]] = None
) -> dict:
    """
    Invite a staff member by email.

    Re-inviting an address that still has a pending invitation resends it
    instead of failing.

    Raises:
        ForbiddenError: Acting user cannot manage staff
        BadRequestError: Role cannot be invited, or no tenant to invite into
        NotFoundError: Unknown classroom id
        ConflictError: Email belongs to an existing (non-pending) user
    """
    inviter = _load_staff_manager(session, invited_by_user_id, 'invite staff')

    if not can_be_invited(role):
        raise BadRequestError('Cannot invite users with this role')

    if not tenant_id:
        raise BadRequestError('tenantId is required')

    existing = find_user_by_email(session, email)
    if existing:
        if existing.is_pending_invitation() and existing.tenant_id == tenant_id:
            logger.info(f"Pending invitation exists for {existing.email}; resending")
            return resend_staff_invitation(session, existing.id, invited_by_user_id)
        raise ConflictError('User with this email already exists')

    assign_ids = []
    if role == UserRole.EDUCATOR.value and classroom_ids:
        assign_ids = _validate_classrooms(session, tenant_id, classroom_ids)

    now = utcnow()
    try:
        user = User(
            email=email.strip().lower(),
            password_hash=None,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            tenant_id=tenant_id,
            email_verified=False,
            is_active=True,
            is_invited=True,
            invitation_token=credential_service.generate_opaque_token(),
            invitation_expires_at=hours_from_now(current_app.config['INVITATION_TTL_HOURS']),
            invited_by=inviter.id,
            invited_at=now,
        )
        session.add(user)
        session.flush()

        for classroom_id in assign_ids:
            session.add(StaffClassroomAssignment(user_id=user.id, classroom_id=classroom_id))

        session.commit()

    except IntegrityError:
        session.rollback()
        raise ConflictError('User with this email already exists')
    except Exception:
        session.rollback()
        raise

    logger.info(f"Staff invited: {user.email} as {user.role} by {inviter.email}")
    email_sent = _send_invitation(session, user, inviter)

    return {
        'message': 'Invitation sent successfully' if email_sent
        else 'Invitation created but the email could not be sent',
        'emailSent': email_sent,
        'user': user.public_dict(),
    }


def accept_invitation(session, token: str, password: str) -> dict:
    """
    Set the password and activate an invited account.

    Wrong, already-used and expired tokens all produce the same error.
    The transition is one conditional UPDATE so a half-accepted invitation
    can never be observed and a token can only be redeemed once.

    Raises:
        BadRequestError: Invalid/expired token or weak password
    """
    errors = password_errors(password, current_app.config['PASSWORD_MIN_LENGTH'])
    if errors:
        raise BadRequestError(', '.join(errors))

    user = None
    if token:
        user = session.query(User).filter(
            User.invitation_token == token,
            User.is_invited.is_(True),
            User.invitation_expires_at > utcnow()
        ).first()

    if not user:
        raise BadRequestError(INVALID_TOKEN_MESSAGE)

    updated = session.query(User).filter(
        User.id == user.id,
        User.invitation_token == token,
        User.is_invited.is_(True)
    ).update({
        User.password_hash: credential_service.hash_password(password),
        User.email_verified: True,
        User.is_invited: False,
        User.invitation_token: None,
        User.invitation_expires_at: None,
        User.updated_at: utcnow(),
    }, synchronize_session=False)

    if updated != 1:
        session.rollback()
        raise BadRequestError(INVALID_TOKEN_MESSAGE)

    session.commit()
    session.refresh(user)

    logger.info(f"Invitation accepted: {user.email}")
    return {
        'message': 'Invitation accepted successfully. You can now log in.',
        'user': user.public_dict(),
    }


def resend_staff_invitation(session, target_user_id: str, resend_by_user_id: str) -> dict:
    """
    Regenerate the token and expiry of a pending invitation and email it again.
    Role and classroom assignments are left untouched.

    Raises:
        ForbiddenError: Acting user cannot manage staff
        NotFoundError: Target not found in the actor's tenant
        BadRequestError: Target has no pending invitation
    """
    actor = _load_staff_manager(session, resend_by_user_id, 'resend invitations')
    target = _load_target(session, actor, target_user_id)

    if not target.is_pending_invitation():
        raise BadRequestError('User does not have a pending invitation')

    target.invitation_token = credential_service.generate_opaque_token()
    target.invitation_expires_at = hours_from_now(current_app.config['INVITATION_TTL_HOURS'])
    session.commit()

    logger.info(f"Invitation resent to {target.email} by {actor.email}")
    email_sent = _send_invitation(session, target, actor)

    return {
        'message': 'Invitation resent successfully' if email_sent
        else 'Invitation renewed but the email could not be sent',
        'emailSent': email_sent,
        'user': target.public_dict(),
    }


def cancel_invitation(session, target_user_id: str, canceled_by_user_id: str) -> dict:
    """
    Delete a pending invitation (the user row itself).

    Raises:
        ForbiddenError: Acting user cannot manage staff
        NotFoundError: Target not found in the actor's tenant
        BadRequestError: Target has no pending invitation
    """
    actor = _load_staff_manager(session, canceled_by_user_id, 'cancel invitations')
    target = _load_target(session, actor, target_user_id)

    if not target.is_pending_invitation():
        raise BadRequestError('User does not have a pending invitation')

    email = target.email
    try:
        session.delete(target)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Invitation for {email} canceled by {actor.email}")
    return {'message': 'Invitation canceled successfully'}


def list_invited_users(session, tenant_id: str) -> List[dict]:
    """Pending invitations of a tenant, newest first (tokens never included)."""
    now = utcnow()
    users = session.query(User).filter(
        User.tenant_id == tenant_id,
        User.is_invited.is_(True),
        User.email_verified.is_(False)
    ).order_by(User.invited_at.desc()).all()

    return [
        {
            'id': u.id,
            'email': u.email,
            'firstName': u.first_name,
            'lastName': u.last_name,
            'phone': u.phone,
            'role': u.role,
            'invitedAt': iso(u.invited_at),
            'invitationExpiresAt': iso(u.invitation_expires_at),
            'isExpired': bool(u.invitation_expires_at and u.invitation_expires_at <= now),
            'invitedBy': {
                'id': u.inviter.id,
                'firstName': u.inviter.first_name,
                'lastName': u.inviter.last_name,
            } if u.inviter else None,
        }
        for u in users
    ]
