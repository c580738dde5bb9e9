"""Business onboarding blueprint (public sign-up with a generated subdomain)."""
import logging

from flask import Blueprint, current_app, jsonify

from daycare.database import get_session
from daycare.decorators.permissions import super_admin_only
from daycare.exceptions import NotFoundError
from daycare.middleware import require_auth
from daycare.services import tenant_service
from daycare.utils.validators import (
    clean_str, get_json_body, is_valid_email, missing_fields, non_string_fields,
    password_errors, raise_if_errors
)

logger = logging.getLogger(__name__)

business_bp = Blueprint('business', __name__, url_prefix='/business')


@business_bp.route('/onboard', methods=['POST'])
def onboard():
    data = get_json_body()
    errors = missing_fields(data, (
        'name', 'email', 'adminFirstName', 'adminLastName', 'adminEmail', 'adminPassword',
    ))
    errors.extend(non_string_fields(data, ('adminPassword',)))
    raise_if_errors(errors)

    for key in ('email', 'adminEmail'):
        value = clean_str(data, key)
        if value and not is_valid_email(value):
            errors.append(f'{key} has an invalid format')
    if data.get('adminPassword'):
        errors.extend(password_errors(data['adminPassword'], current_app.config['PASSWORD_MIN_LENGTH']))
    raise_if_errors(errors)

    result = tenant_service.onboard_business(
        get_session(),
        name=clean_str(data, 'name'),
        email=clean_str(data, 'email'),
        admin_first_name=clean_str(data, 'adminFirstName'),
        admin_last_name=clean_str(data, 'adminLastName'),
        admin_email=clean_str(data, 'adminEmail'),
        admin_password=data['adminPassword'],
        phone=clean_str(data, 'phone'),
        address=clean_str(data, 'address'),
        city=clean_str(data, 'city'),
        state=clean_str(data, 'state'),
        zip_code=clean_str(data, 'zipCode'),
        country=clean_str(data, 'country'),
        admin_phone=clean_str(data, 'adminPhone')
    )
    return jsonify(result), 201


@business_bp.route('/check-subdomain/<subdomain>', methods=['GET'])
def check_subdomain(subdomain):
    available = tenant_service.check_subdomain_availability(get_session(), subdomain.lower())
    return jsonify({'available': available}), 200


@business_bp.route('/by-subdomain/<subdomain>', methods=['GET'])
def by_subdomain(subdomain):
    business = tenant_service.find_by_subdomain(get_session(), subdomain.lower())
    if not business:
        raise NotFoundError('Business not found')
    return jsonify({'business': business}), 200


@business_bp.route('/generate-subdomain', methods=['POST'])
def generate_subdomain():
    data = get_json_body()
    raise_if_errors(missing_fields(data, ('businessName',)))

    subdomain = tenant_service.generate_subdomain(clean_str(data, 'businessName'))
    available = bool(subdomain) and tenant_service.check_subdomain_availability(get_session(), subdomain)
    return jsonify({'subdomain': subdomain, 'available': available}), 200


@business_bp.route('/all', methods=['GET'])
@require_auth
@super_admin_only
def all_businesses():
    """Every tenant with user and child counts (platform admins only)."""
    return jsonify(tenant_service.list_tenants(get_session())), 200
