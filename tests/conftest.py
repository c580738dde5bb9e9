import pytest
import uuid
from datetime import date

from daycare import create_app
from daycare.database import create_all, drop_all, get_session
from daycare.models import (
    Tenant, User, UserRole, Child, Classroom, ParentChildRelationship
)
from daycare.services.credential_service import hash_password, issue_token
from daycare.services.email_service import mail

PASSWORD = 'Passw0rd1'
PASSWORD_HASH = hash_password(PASSWORD)


def save(session, obj):
    """Commit a row and return it detached with its columns loaded."""
    session.add(obj)
    session.commit()
    session.refresh(obj)
    session.expunge(obj)
    return obj


def make_user(session, tenant, role, **overrides):
    suffix = str(uuid.uuid4())[:8]
    fields = dict(
        email=f'{role.lower()}-{suffix}@test.com',
        password_hash=PASSWORD_HASH,
        first_name=role.title(),
        last_name=suffix,
        role=role,
        tenant_id=tenant.id if tenant else None,
        email_verified=True,
        is_active=True,
    )
    fields.update(overrides)
    return save(session, User(**fields))


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app('config.TestConfig')


@pytest.fixture(autouse=True)
def database(app):
    """Fresh schema per test, inside an application context."""
    with app.app_context():
        create_all()
        yield
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(database):
    """Database session shared with the application."""
    return get_session()


@pytest.fixture(scope='function')
def outbox():
    """Emails dispatched during the test."""
    with mail.record_messages() as messages:
        yield messages


@pytest.fixture(scope='function')
def auth_headers():
    """Build an Authorization header for a user."""
    def _headers(user):
        token = issue_token(user.id, user.email, user.role, user.tenant_id)
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture(scope='function')
def tenant(session):
    """Create first test tenant."""
    suffix = str(uuid.uuid4())[:8]
    return save(session, Tenant(
        name=f'Sunny Days {suffix}',
        subdomain=f'sunny-{suffix}',
        email=f'sunny-{suffix}@test.com',
    ))


@pytest.fixture(scope='function')
def other_tenant(session):
    """Create second test tenant for isolation tests."""
    suffix = str(uuid.uuid4())[:8]
    return save(session, Tenant(
        name=f'Little Stars {suffix}',
        subdomain=f'stars-{suffix}',
        email=f'stars-{suffix}@test.com',
    ))


@pytest.fixture(scope='function')
def admin(session, tenant):
    return make_user(session, tenant, UserRole.BUSINESS_ADMIN.value)


@pytest.fixture(scope='function')
def other_admin(session, other_tenant):
    return make_user(session, other_tenant, UserRole.BUSINESS_ADMIN.value)


@pytest.fixture(scope='function')
def educator(session, tenant):
    return make_user(session, tenant, UserRole.EDUCATOR.value)


@pytest.fixture(scope='function')
def super_admin(session):
    return make_user(session, None, UserRole.SUPER_ADMIN.value)


@pytest.fixture(scope='function')
def parent_user(session, tenant):
    return make_user(session, tenant, UserRole.PARENT.value, first_name='Amy', last_name='Lee')


@pytest.fixture(scope='function')
def second_parent(session, tenant):
    return make_user(session, tenant, UserRole.PARENT.value, first_name='Ben', last_name='Lee')


@pytest.fixture(scope='function')
def classroom(session, tenant):
    return save(session, Classroom(tenant_id=tenant.id, name='Toddlers', age_group='1-2', capacity=2))


@pytest.fixture(scope='function')
def other_classroom(session, other_tenant):
    return save(session, Classroom(tenant_id=other_tenant.id, name='Infants', capacity=5))


@pytest.fixture(scope='function')
def child(session, tenant, parent_user):
    """Child whose only relationship is a primary link to parent_user."""
    kid = save(session, Child(
        tenant_id=tenant.id,
        first_name='Mia',
        last_name='Lee',
        date_of_birth=date(2021, 5, 4),
    ))
    save(session, ParentChildRelationship(
        parent_id=parent_user.id,
        child_id=kid.id,
        relationship_type='MOTHER',
        is_primary=True,
    ))
    return kid


@pytest.fixture(scope='function')
def other_child(session, other_tenant):
    return save(session, Child(
        tenant_id=other_tenant.id,
        first_name='Leo',
        last_name='Park',
        date_of_birth=date(2020, 1, 15),
    ))


@pytest.fixture(scope='function')
def user_factory(session):
    """Create extra users: user_factory(tenant, role, **fields)."""
    def _make(tenant, role, **overrides):
        return make_user(session, tenant, role, **overrides)
    return _make
