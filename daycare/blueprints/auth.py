"""Authentication blueprint: login, registration, email verification and tenant sign-up."""
import logging

from flask import Blueprint, current_app, g, jsonify, request

from daycare.database import get_session
from daycare.middleware import require_auth
from daycare.models import UserRole
from daycare.services import auth_service, tenant_service
from daycare.utils.validators import (
    check_choice, clean_str, get_json_body, is_valid_email, is_valid_subdomain,
    missing_fields, non_string_fields, password_errors, raise_if_errors
)

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Exchange email + password for a Bearer JWT."""
    data = get_json_body()
    raise_if_errors(
        missing_fields(data, ('email', 'password')) + non_string_fields(data, ('email', 'password'))
    )

    result = auth_service.login(
        get_session(),
        clean_str(data, 'email'),
        data['password'],
        tenant_subdomain=clean_str(data, 'tenantSubdomain')
    )
    return jsonify(result), 200


@auth_bp.route('/register', methods=['POST'])
def register():
    data = get_json_body()
    errors = missing_fields(data, ('email', 'password', 'firstName', 'lastName', 'role'))
    errors.extend(non_string_fields(data, ('email', 'password', 'role', 'tenantId')))
    raise_if_errors(errors)

    email = clean_str(data, 'email')
    if email and not is_valid_email(email):
        errors.append('Invalid email format')
    if data.get('password'):
        errors.extend(password_errors(data['password'], current_app.config['PASSWORD_MIN_LENGTH']))
    if data.get('role'):
        errors.extend(check_choice(data['role'], UserRole, 'role'))
    raise_if_errors(errors)

    result = auth_service.register(
        get_session(),
        email=email,
        password=data['password'],
        first_name=clean_str(data, 'firstName'),
        last_name=clean_str(data, 'lastName'),
        role=data['role'],
        phone=clean_str(data, 'phone'),
        tenant_id=clean_str(data, 'tenantId')
    )
    return jsonify(result), 201


@auth_bp.route('/register-tenant', methods=['POST'])
def register_tenant():
    """Create a daycare together with its first administrator."""
    data = get_json_body()
    errors = missing_fields(data, (
        'daycareName', 'subdomain', 'address', 'phone',
        'adminFirstName', 'adminLastName', 'email', 'password',
    ))
    errors.extend(non_string_fields(data, ('subdomain', 'email', 'password')))
    raise_if_errors(errors)

    subdomain = clean_str(data, 'subdomain')
    if subdomain and not is_valid_subdomain(subdomain):
        errors.append(
            'Subdomain must be at least 3 characters and can only contain '
            'lowercase letters, numbers, and hyphens'
        )
    email = clean_str(data, 'email')
    if email and not is_valid_email(email):
        errors.append('Invalid email format')
    if data.get('password'):
        errors.extend(password_errors(data['password'], current_app.config['PASSWORD_MIN_LENGTH']))
    if not isinstance(data.get('acceptTerms'), bool):
        errors.append('acceptTerms must be a boolean')

    business_hours = data.get('businessHours')
    if business_hours is not None and not isinstance(business_hours, dict):
        errors.append('businessHours must be an object')
    raise_if_errors(errors)

    result = tenant_service.create_tenant(
        get_session(),
        daycare_name=clean_str(data, 'daycareName'),
        subdomain=subdomain,
        address=clean_str(data, 'address'),
        phone=clean_str(data, 'phone'),
        admin_first_name=clean_str(data, 'adminFirstName'),
        admin_last_name=clean_str(data, 'adminLastName'),
        email=email,
        password=data['password'],
        accept_terms=data['acceptTerms'],
        business_hours=business_hours
    )
    return jsonify(result), 201


@auth_bp.route('/validate-subdomain', methods=['GET'])
def validate_subdomain():
    subdomain = (request.args.get('subdomain') or '').strip().lower()

    if not is_valid_subdomain(subdomain):
        return jsonify({
            'available': False,
            'message': 'Invalid subdomain format',
        }), 200

    available = tenant_service.check_subdomain_availability(get_session(), subdomain)
    return jsonify({
        'available': available,
        'message': 'Subdomain is available' if available else 'Subdomain is already taken',
    }), 200


@auth_bp.route('/verify-email', methods=['POST'])
def verify_email():
    data = get_json_body()
    raise_if_errors(missing_fields(data, ('token',)))
    return jsonify(auth_service.verify_email(get_session(), clean_str(data, 'token'))), 200


@auth_bp.route('/resend-verification', methods=['POST'])
def resend_verification():
    data = get_json_body()
    raise_if_errors(missing_fields(data, ('email',)))
    return jsonify(auth_service.resend_verification_email(get_session(), clean_str(data, 'email'))), 200


@auth_bp.route('/me', methods=['GET'])
@auth_bp.route('/profile', methods=['GET'])
@require_auth
def me():
    """Current user with a tenant summary."""
    return jsonify(auth_service.get_profile(g.user)), 200
