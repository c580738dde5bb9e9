"""
Staff invitation blueprint.

Admins invite educators and other admins by email; the invitee sets a
password through the accept link. Routes share the /auth prefix.
"""
import logging

from flask import Blueprint, g, jsonify

from daycare.database import get_session
from daycare.middleware import require_auth, require_tenant
from daycare.decorators.permissions import staff_managers_only
from daycare.models import UserRole
from daycare.services import invitation_service
from daycare.utils.validators import (
    clean_str, get_json_body, is_valid_email, missing_fields, non_string_fields, raise_if_errors
)

logger = logging.getLogger(__name__)

staff_bp = Blueprint('staff', __name__, url_prefix='/auth')


@staff_bp.route('/invite-staff', methods=['POST'])
@require_auth
def invite_staff():
    """
    Invite a staff member. Role and permission checks happen in the service.
    """
    data = get_json_body()
    errors = missing_fields(data, ('email', 'firstName', 'lastName', 'role'))
    errors.extend(non_string_fields(data, ('email', 'role', 'tenantId')))

    email = clean_str(data, 'email')
    if email and not is_valid_email(email):
        errors.append('Invalid email format')

    classroom_ids = data.get('classroomIds')
    if classroom_ids is not None and (
        not isinstance(classroom_ids, list) or not all(isinstance(c, str) for c in classroom_ids)
    ):
        errors.append('classroomIds must be a list of ids')
    raise_if_errors(errors)

    # A platform admin has no tenant of their own and names the target one
    tenant_id = g.tenant_id
    if g.user_role == UserRole.SUPER_ADMIN.value:
        tenant_id = clean_str(data, 'tenantId')

    result = invitation_service.invite_staff(
        get_session(),
        email=email,
        first_name=clean_str(data, 'firstName'),
        last_name=clean_str(data, 'lastName'),
        role=data['role'],
        invited_by_user_id=g.user_id,
        tenant_id=tenant_id,
        phone=clean_str(data, 'phone'),
        classroom_ids=classroom_ids
    )
    return jsonify(result), 201


@staff_bp.route('/accept-invitation', methods=['POST'])
def accept_invitation():
    """Public: the token is the credential."""
    data = get_json_body()
    raise_if_errors(
        missing_fields(data, ('token', 'password')) + non_string_fields(data, ('token', 'password'))
    )

    result = invitation_service.accept_invitation(
        get_session(), clean_str(data, 'token'), data['password']
    )
    return jsonify(result), 200


@staff_bp.route('/resend-invitation', methods=['POST'])
@require_auth
def resend_invitation():
    data = get_json_body()
    raise_if_errors(missing_fields(data, ('userId',)))

    result = invitation_service.resend_staff_invitation(
        get_session(), clean_str(data, 'userId'), g.user_id
    )
    return jsonify(result), 200


@staff_bp.route('/cancel-invitation/<user_id>', methods=['DELETE'])
@require_auth
def cancel_invitation(user_id):
    result = invitation_service.cancel_invitation(get_session(), user_id, g.user_id)
    return jsonify(result), 200


@staff_bp.route('/invited-users', methods=['GET'])
@require_auth
@require_tenant
@staff_managers_only
def invited_users():
    """Pending invitations of the caller's tenant."""
    return jsonify(invitation_service.list_invited_users(get_session(), g.tenant_id)), 200
