"""Parent-child relationship blueprint (staff of the child's tenant only)."""
import logging

from flask import Blueprint, g, jsonify, request

from daycare.database import get_session
from daycare.decorators.permissions import require_role
from daycare.middleware import require_auth, require_tenant
from daycare.models import RelationshipType, UserRole
from daycare.services import parent_relationship_service
from daycare.utils.validators import (
    check_choice, clean_str, get_json_body, is_valid_email, missing_fields,
    optional_bool, raise_if_errors
)

logger = logging.getLogger(__name__)

parent_relationships_bp = Blueprint(
    'parent_relationships', __name__, url_prefix='/parent-relationships'
)

STAFF_ROLES = (UserRole.BUSINESS_ADMIN.value, UserRole.EDUCATOR.value)


def _flags(data):
    return {
        'is_primary': optional_bool(data, 'isPrimary'),
        'is_emergency_contact': optional_bool(data, 'isEmergencyContact'),
        'can_pickup': optional_bool(data, 'canPickup'),
    }


@parent_relationships_bp.route('/add-new-parent', methods=['POST'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def add_new_parent():
    data = get_json_body()
    errors = missing_fields(data, ('childId', 'firstName', 'lastName', 'email', 'relationship'))

    email = clean_str(data, 'email')
    if email and not is_valid_email(email):
        errors.append('Invalid email format')
    if data.get('relationship'):
        errors.extend(check_choice(data['relationship'], RelationshipType, 'relationship'))
    raise_if_errors(errors)

    result = parent_relationship_service.add_new_parent_to_child(
        get_session(),
        child_id=clean_str(data, 'childId'),
        tenant_id=g.tenant_id,
        email=email,
        first_name=clean_str(data, 'firstName'),
        last_name=clean_str(data, 'lastName'),
        relationship_type=data['relationship'],
        phone=clean_str(data, 'phone'),
        **_flags(data)
    )
    return jsonify(result), 201


@parent_relationships_bp.route('/add-existing-parent', methods=['POST'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def add_existing_parent():
    data = get_json_body()
    errors = missing_fields(data, ('childId', 'parentId', 'relationship'))
    if data.get('relationship'):
        errors.extend(check_choice(data['relationship'], RelationshipType, 'relationship'))
    raise_if_errors(errors)

    result = parent_relationship_service.add_existing_parent_to_child(
        get_session(),
        child_id=clean_str(data, 'childId'),
        parent_id=clean_str(data, 'parentId'),
        tenant_id=g.tenant_id,
        relationship_type=data['relationship'],
        **_flags(data)
    )
    return jsonify(result), 201


@parent_relationships_bp.route('/<relationship_id>', methods=['PUT'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def update_relationship(relationship_id):
    """Partial update; omitted keys are left unchanged."""
    data = get_json_body()
    relationship = data.get('relationship')
    if relationship is not None:
        raise_if_errors(check_choice(relationship, RelationshipType, 'relationship'))

    result = parent_relationship_service.update_parent_child_relationship(
        get_session(),
        relationship_id,
        g.tenant_id,
        relationship_type=relationship,
        **_flags(data)
    )
    return jsonify(result), 200


@parent_relationships_bp.route('/<relationship_id>', methods=['DELETE'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def remove_relationship(relationship_id):
    result = parent_relationship_service.remove_parent_from_child(
        get_session(), relationship_id, g.tenant_id
    )
    return jsonify(result), 200


@parent_relationships_bp.route('/child/<child_id>/parents', methods=['GET'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def child_parents(child_id):
    return jsonify(parent_relationship_service.get_child_parents(
        get_session(), child_id, g.tenant_id
    )), 200


@parent_relationships_bp.route('/available-parents', methods=['GET'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def available_parents():
    return jsonify(parent_relationship_service.get_available_parents(
        get_session(), g.tenant_id, request.args.get('search')
    )), 200
