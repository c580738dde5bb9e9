"""
Tenant registration and business onboarding.

Both flows create a tenant, its first BUSINESS_ADMIN and the default
document-type catalog in a single transaction.
"""
import logging
import re
import unicodedata
from typing import List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from daycare.exceptions import BadRequestError, ConflictError
from daycare.models import (
    Child, DocumentType, Tenant, TenantSettings, TenantStatus, User, UserRole
)
from daycare.services import credential_service, email_service
from daycare.services.auth_service import find_user_by_email
from daycare.utils.dates import hours_from_now, iso

logger = logging.getLogger(__name__)

SUBDOMAIN_MAX_LENGTH = 30
SUBDOMAIN_MAX_ATTEMPTS = 100

DEFAULT_BUSINESS_HOURS = {'openTime': '07:00', 'closeTime': '18:00'}

# Catalog seeded by /auth/register-tenant
REGISTRATION_DOCUMENT_TYPES = [
    ('Enrollment Form', 'Completed enrollment application', ['pdf', 'doc', 'docx'], False, 5),
    ('Medical Form', 'Health information and medical history', ['pdf', 'doc', 'docx'], False, 5),
    ('Immunization Records', 'Up-to-date vaccination records', ['pdf', 'jpg', 'png'], True, 10),
    ('Birth Certificate', 'Official birth certificate', ['pdf', 'jpg', 'png'], False, 10),
    ('Emergency Contact Form', 'Emergency contact information', ['pdf', 'doc', 'docx'], False, 5),
    ('Consent Form', 'Parental consent and authorization', ['pdf', 'doc', 'docx'], False, 5),
]

# Smaller catalog seeded by /business/onboard
ONBOARDING_DOCUMENT_TYPES = [
    ('Immunization Records', 'Up-to-date vaccination records', ['pdf', 'jpg', 'png'], True, None),
    ('Birth Certificate', 'Official birth certificate', ['pdf', 'jpg', 'png'], False, None),
    ('Emergency Contact Form', 'Emergency contact information', ['pdf', 'doc', 'docx'], False, None),
]


def generate_subdomain(name: str) -> str:
    """Generate URL-safe subdomain from business name."""
    # Normalize unicode characters
    subdomain = unicodedata.normalize('NFKD', name or '')
    subdomain = subdomain.encode('ascii', 'ignore').decode('ascii')

    subdomain = subdomain.lower()
    subdomain = re.sub(r'[^a-z0-9\s-]', '', subdomain)
    subdomain = re.sub(r'\s+', '-', subdomain)
    subdomain = re.sub(r'-+', '-', subdomain)
    subdomain = subdomain.strip('-')

    # Limit length
    if len(subdomain) > SUBDOMAIN_MAX_LENGTH:
        subdomain = subdomain[:SUBDOMAIN_MAX_LENGTH].rstrip('-')

    return subdomain


def check_subdomain_availability(session, subdomain: str) -> bool:
    return session.query(Tenant).filter_by(subdomain=subdomain).first() is None


def _generate_unique_subdomain(session, name: str) -> str:
    """Generate a free subdomain, appending -1, -2, ... on collision."""
    base = generate_subdomain(name)
    if not base:
        raise BadRequestError('Unable to generate subdomain from business name')

    if check_subdomain_availability(session, base):
        return base

    for counter in range(1, SUBDOMAIN_MAX_ATTEMPTS + 1):
        candidate = f"{base}-{counter}"
        if check_subdomain_availability(session, candidate):
            return candidate

    raise BadRequestError('Unable to generate unique subdomain')


def _seed_document_types(session, tenant_id: str, catalog):
    for name, description, formats, expiry_required, max_size_mb in catalog:
        session.add(DocumentType(
            tenant_id=tenant_id,
            name=name,
            description=description,
            allowed_formats=formats,
            is_required=True,
            expiry_required=expiry_required,
            max_size_mb=max_size_mb,
        ))


def _default_settings(business_hours: Optional[dict]) -> dict:
    return {
        'businessHours': business_hours or dict(DEFAULT_BUSINESS_HOURS),
        'checkInRequired': True,
        'latePickupFee': 25.00,
        'registrationFee': 50.00,
        'currency': 'USD',
        'dateFormat': 'MM/DD/YYYY',
        'notificationPreferences': {'email': True, 'sms': False, 'push': True},
    }


def _tenant_email_taken(session, email: str) -> bool:
    return session.query(Tenant).filter(
        func.lower(Tenant.email) == email.lower()
    ).first() is not None


def validate_tenant_registration(session, subdomain: str, email: str, accept_terms: bool):
    """
    Raises:
        ConflictError: Subdomain taken, email used by a user or a tenant
        BadRequestError: Terms not accepted
    """
    if not check_subdomain_availability(session, subdomain):
        raise ConflictError('Subdomain is already taken')

    if find_user_by_email(session, email):
        raise ConflictError('User with this email already exists')

    if _tenant_email_taken(session, email):
        raise ConflictError('Tenant with this email already exists')

    if not accept_terms:
        raise BadRequestError('You must accept the terms and conditions')


def create_tenant(
    session,
    daycare_name: str,
    subdomain: str,
    address: str,
    phone: str,
    admin_first_name: str,
    admin_last_name: str,
    email: str,
    password: str,
    accept_terms: bool,
    business_hours: Optional[dict] = None
) -> dict:
    """
    Register a daycare: tenant + settings + unverified admin + document catalog.

    The verification email is sent only after the transaction commits.
    """
    email = email.strip().lower()
    subdomain = subdomain.strip().lower()
    validate_tenant_registration(session, subdomain, email, accept_terms)

    verification_token = credential_service.generate_opaque_token()

    try:
        tenant = Tenant(
            name=daycare_name,
            subdomain=subdomain,
            email=email,
            phone=phone,
            address=address,
            status=TenantStatus.ACTIVE.value,
        )
        session.add(tenant)
        session.flush()

        session.add(TenantSettings(tenant_id=tenant.id, settings=_default_settings(business_hours)))

        admin = User(
            email=email,
            password_hash=credential_service.hash_password(password),
            first_name=admin_first_name,
            last_name=admin_last_name,
            phone=phone,
            role=UserRole.BUSINESS_ADMIN.value,
            tenant_id=tenant.id,
            email_verified=False,
            is_active=True,
            email_verification_token=verification_token,
            email_verification_expiry=hours_from_now(current_app.config['EMAIL_VERIFICATION_TTL_HOURS']),
        )
        session.add(admin)

        _seed_document_types(session, tenant.id, REGISTRATION_DOCUMENT_TYPES)
        session.commit()

    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Tenant registration conflict for {subdomain}: {e.orig}")
        raise ConflictError('Subdomain or email is already registered')
    except Exception:
        session.rollback()
        raise

    logger.info(f"Tenant registered: {tenant.subdomain} (admin {admin.email})")
    email_service.send_verification_email(admin.email, admin.first_name, verification_token)

    return {
        'tenant': {
            'id': tenant.id,
            'name': tenant.name,
            'subdomain': tenant.subdomain,
            'email': tenant.email,
            'status': tenant.status,
            'planExpiry': None,
        },
        'admin': {
            'id': admin.id,
            'email': admin.email,
            'role': admin.role,
        },
        'message': 'Please check your email to verify your account',
    }


def onboard_business(
    session,
    name: str,
    email: str,
    admin_first_name: str,
    admin_last_name: str,
    admin_email: str,
    admin_password: str,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = None,
    country: Optional[str] = None,
    admin_phone: Optional[str] = None
) -> dict:
    """
    Onboard a business with a generated subdomain and a verified admin.

    Raises:
        BadRequestError: If no free subdomain can be generated
        ConflictError: Duplicate business email or admin email
    """
    subdomain = _generate_unique_subdomain(session, name)

    if _tenant_email_taken(session, email):
        raise ConflictError('Business with this email already exists')

    if find_user_by_email(session, admin_email):
        raise ConflictError('User with this email already exists')

    try:
        tenant = Tenant(
            name=name,
            subdomain=subdomain,
            email=email.strip().lower(),
            phone=phone,
            address=address,
            city=city,
            state=state,
            zip_code=zip_code,
            country=country or 'USA',
            status=TenantStatus.ACTIVE.value,
        )
        session.add(tenant)
        session.flush()

        admin = User(
            email=admin_email.strip().lower(),
            password_hash=credential_service.hash_password(admin_password),
            first_name=admin_first_name,
            last_name=admin_last_name,
            phone=admin_phone,
            role=UserRole.BUSINESS_ADMIN.value,
            tenant_id=tenant.id,
            email_verified=True,
            is_active=True,
        )
        session.add(admin)

        _seed_document_types(session, tenant.id, ONBOARDING_DOCUMENT_TYPES)
        session.commit()

    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Business onboarding conflict for {subdomain}: {e.orig}")
        raise ConflictError('Business or admin email is already registered')
    except Exception:
        session.rollback()
        raise

    logger.info(f"Business onboarded: {tenant.subdomain}")
    return {
        'business': {
            'id': tenant.id,
            'name': tenant.name,
            'subdomain': tenant.subdomain,
            'email': tenant.email,
            'status': tenant.status,
        },
        'adminUser': {
            'id': admin.id,
            'email': admin.email,
            'firstName': admin.first_name,
            'lastName': admin.last_name,
            'role': admin.role,
        },
    }


def find_by_subdomain(session, subdomain: str) -> Optional[dict]:
    tenant = session.query(Tenant).filter_by(subdomain=subdomain).first()
    if not tenant:
        return None
    return {
        'id': tenant.id,
        'name': tenant.name,
        'subdomain': tenant.subdomain,
        'email': tenant.email,
        'phone': tenant.phone,
        'address': tenant.address,
        'city': tenant.city,
        'state': tenant.state,
        'zipCode': tenant.zip_code,
        'country': tenant.country,
        'status': tenant.status,
    }


def list_tenants(session) -> List[dict]:
    """All tenants, newest first, with user and child counts."""
    user_counts = dict(
        session.query(User.tenant_id, func.count(User.id)).group_by(User.tenant_id).all()
    )
    child_counts = dict(
        session.query(Child.tenant_id, func.count(Child.id))
        .filter(Child.deleted_at.is_(None))
        .group_by(Child.tenant_id).all()
    )

    tenants = session.query(Tenant).order_by(Tenant.created_at.desc()).all()
    return [
        {
            'id': t.id,
            'name': t.name,
            'subdomain': t.subdomain,
            'email': t.email,
            'status': t.status,
            'createdAt': iso(t.created_at),
            'counts': {
                'users': user_counts.get(t.id, 0),
                'children': child_counts.get(t.id, 0),
            },
        }
        for t in tenants
    ]
