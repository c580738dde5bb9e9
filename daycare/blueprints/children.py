"""
Children blueprint.

Enrollment creates the child with its primary parent in one request.
Photo upload is handled by the storage service outside this API.
"""
import logging

from flask import Blueprint, g, jsonify, request

from daycare.database import get_session
from daycare.decorators.permissions import require_role
from daycare.exceptions import BadRequestError
from daycare.middleware import require_auth, require_tenant
from daycare.models import ChildStatus, Gender, RelationshipType, UserRole
from daycare.services import children_service
from daycare.utils.dates import parse_date
from daycare.utils.validators import (
    check_choice, clean_str, get_json_body, is_valid_email, missing_fields,
    optional_bool, raise_if_errors
)

logger = logging.getLogger(__name__)

children_bp = Blueprint('children', __name__, url_prefix='/children')

STAFF_ROLES = (UserRole.BUSINESS_ADMIN.value, UserRole.EDUCATOR.value)

MAX_PAGE_SIZE = 100


def _date_field(data, key, errors):
    try:
        return parse_date(data.get(key))
    except (TypeError, ValueError):
        errors.append(f'{key} must be an ISO date (YYYY-MM-DD)')
        return None


def _validate_parent_details(details, errors):
    if not isinstance(details, dict):
        errors.append('parentDetails must be an object')
        return
    errors.extend(
        f'parentDetails.{e}'
        for e in missing_fields(details, ('firstName', 'lastName', 'email', 'relationship'))
    )
    if details.get('email') and not is_valid_email(str(details['email']).strip()):
        errors.append('parentDetails.email has an invalid format')
    if details.get('relationship'):
        errors.extend(check_choice(details['relationship'], RelationshipType, 'parentDetails.relationship'))
    optional_bool(details, 'isEmergencyContact')
    optional_bool(details, 'canPickup')


def _validate_nested(data, errors):
    medical_info = data.get('medicalInfo')
    if medical_info is not None:
        if not isinstance(medical_info, dict):
            errors.append('medicalInfo must be an object')
        else:
            for key in ('allergies', 'medications', 'medicalConditions'):
                if medical_info.get(key) is not None and not isinstance(medical_info[key], list):
                    errors.append(f'medicalInfo.{key} must be a list')

    contacts = data.get('emergencyContacts')
    if contacts is not None:
        if not isinstance(contacts, list) or not all(isinstance(c, dict) for c in contacts):
            errors.append('emergencyContacts must be a list of objects')
        else:
            for i, contact in enumerate(contacts):
                errors.extend(
                    f'emergencyContacts[{i}].{e}'
                    for e in missing_fields(contact, ('name', 'relationship', 'phone'))
                )


@children_bp.route('', methods=['POST'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def create_child():
    """Enroll a child."""
    data = get_json_body()
    errors = missing_fields(data, ('firstName', 'lastName', 'dateOfBirth', 'parentDetails'))

    date_of_birth = _date_field(data, 'dateOfBirth', errors)
    enrollment_date = _date_field(data, 'enrollmentDate', errors)
    if data.get('gender'):
        errors.extend(check_choice(data['gender'], Gender, 'gender'))
    if data.get('status'):
        errors.extend(check_choice(data['status'], ChildStatus, 'status'))
    if data.get('parentDetails') is not None:
        _validate_parent_details(data['parentDetails'], errors)
    _validate_nested(data, errors)
    raise_if_errors(errors)

    result = children_service.create_child(
        get_session(),
        tenant_id=g.tenant_id,
        created_by=g.user_id,
        first_name=clean_str(data, 'firstName'),
        last_name=clean_str(data, 'lastName'),
        date_of_birth=date_of_birth,
        parent_details=data['parentDetails'],
        gender=data.get('gender'),
        status=data.get('status'),
        enrollment_date=enrollment_date,
        classroom_id=clean_str(data, 'classroomId'),
        notes=clean_str(data, 'notes'),
        medical_info=data.get('medicalInfo'),
        emergency_contacts=data.get('emergencyContacts')
    )
    return jsonify(result), 201


@children_bp.route('', methods=['GET'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def list_children():
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', 20, type=int)
    if page < 1 or limit < 1:
        raise BadRequestError('page and limit must be positive integers')

    result = children_service.list_children(
        get_session(),
        g.tenant_id,
        status=request.args.get('status') or None,
        classroom_id=request.args.get('classroomId') or None,
        page=page,
        limit=min(limit, MAX_PAGE_SIZE)
    )
    return jsonify(result), 200


@children_bp.route('/<child_id>', methods=['GET'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def get_child(child_id):
    return jsonify(children_service.get_child(get_session(), child_id, g.tenant_id)), 200


@children_bp.route('/<child_id>', methods=['PUT'])
@require_auth
@require_tenant
@require_role(*STAFF_ROLES)
def update_child(child_id):
    data = get_json_body()
    errors = []
    fields = {}

    for key, attr in (('firstName', 'first_name'), ('lastName', 'last_name'),
                      ('notes', 'notes'), ('profilePhoto', 'profile_photo')):
        if key in data:
            fields[attr] = clean_str(data, key)
    for attr in ('first_name', 'last_name'):
        if attr in fields and not fields[attr]:
            errors.append(f'{attr} cannot be empty')

    if 'dateOfBirth' in data:
        fields['date_of_birth'] = _date_field(data, 'dateOfBirth', errors)
        if fields['date_of_birth'] is None:
            errors.append('dateOfBirth cannot be empty')
    if 'enrollmentDate' in data:
        fields['enrollment_date'] = _date_field(data, 'enrollmentDate', errors)
    if 'gender' in data:
        if data['gender'] is not None:
            errors.extend(check_choice(data['gender'], Gender, 'gender'))
        fields['gender'] = data['gender']
    if 'status' in data:
        errors.extend(check_choice(data['status'], ChildStatus, 'status'))
        fields['status'] = data['status']

    _validate_nested(data, errors)
    raise_if_errors(errors)

    result = children_service.update_child(
        get_session(),
        child_id,
        g.tenant_id,
        fields,
        classroom_id=clean_str(data, 'classroomId'),
        medical_info=data.get('medicalInfo'),
        emergency_contacts=data.get('emergencyContacts')
    )
    return jsonify(result), 200


@children_bp.route('/<child_id>', methods=['DELETE'])
@require_auth
@require_tenant
@require_role(UserRole.BUSINESS_ADMIN.value)
def delete_child(child_id):
    return jsonify(children_service.delete_child(get_session(), child_id, g.tenant_id)), 200
