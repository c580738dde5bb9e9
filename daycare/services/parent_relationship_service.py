"""
Parent <-> child relationship management.

Every child with at least one relationship has exactly one primary
relationship. Operations that move the primary flag (demote-then-create,
promote-then-delete) run in one transaction with the child row locked, so
concurrent requests against the same child are serialized by the database.
"""
import logging
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from daycare.exceptions import BadRequestError, ConflictError, NotFoundError
from daycare.models import Child, ParentChildRelationship, RelationshipType, User, UserRole
from daycare.services import credential_service, email_service
from daycare.services.auth_service import find_user_by_email
from daycare.utils.dates import hours_from_now, iso

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = 'Parent is already associated with this child'


def serialize_relationship(rel: ParentChildRelationship) -> dict:
    return {
        'id': rel.id,
        'parentId': rel.parent_id,
        'childId': rel.child_id,
        'relationship': rel.relationship_type,
        'isPrimary': rel.is_primary,
        'isEmergencyContact': rel.is_emergency_contact,
        'canPickup': rel.can_pickup,
        'createdAt': iso(rel.created_at),
        'parent': {
            'id': rel.parent.id,
            'firstName': rel.parent.first_name,
            'lastName': rel.parent.last_name,
            'email': rel.parent.email,
            'phone': rel.parent.phone,
            'emailVerified': rel.parent.email_verified,
        },
        'child': rel.child.summary(),
    }


def _get_child(session, child_id: str, tenant_id: str, lock: bool = False) -> Child:
    """
    Raises:
        NotFoundError: Child missing, soft-deleted or in another tenant
    """
    query = session.query(Child).filter(
        Child.id == child_id,
        Child.tenant_id == tenant_id,
        Child.deleted_at.is_(None)
    )
    if lock:
        query = query.with_for_update()

    child = query.first()
    if not child:
        raise NotFoundError('Child not found')
    return child


def _get_relationship(session, relationship_id: str, tenant_id: str) -> ParentChildRelationship:
    rel = session.query(ParentChildRelationship).join(Child).filter(
        ParentChildRelationship.id == relationship_id,
        Child.tenant_id == tenant_id
    ).first()
    if not rel:
        raise NotFoundError('Parent-child relationship not found')
    return rel


def _lock_child_row(session, child_id: str):
    session.query(Child).filter(Child.id == child_id).with_for_update().first()


def _demote_primaries(session, child_id: str, exclude_id: Optional[str] = None):
    query = session.query(ParentChildRelationship).filter(
        ParentChildRelationship.child_id == child_id,
        ParentChildRelationship.is_primary.is_(True)
    )
    if exclude_id:
        query = query.filter(ParentChildRelationship.id != exclude_id)
    query.update({ParentChildRelationship.is_primary: False}, synchronize_session='fetch')


def _oldest_other(session, child_id: str, exclude_id: str) -> Optional[ParentChildRelationship]:
    """Promotion candidate: oldest remaining relationship, ties broken by id."""
    return session.query(ParentChildRelationship).filter(
        ParentChildRelationship.child_id == child_id,
        ParentChildRelationship.id != exclude_id
    ).order_by(
        ParentChildRelationship.created_at.asc(),
        ParentChildRelationship.id.asc()
    ).first()


def _has_primary(session, child_id: str) -> bool:
    return session.query(ParentChildRelationship.id).filter(
        ParentChildRelationship.child_id == child_id,
        ParentChildRelationship.is_primary.is_(True)
    ).first() is not None


def _check_relationship_type(relationship_type: str):
    if relationship_type not in {r.value for r in RelationshipType}:
        raise BadRequestError(
            f"relationship must be one of: {', '.join(r.value for r in RelationshipType)}"
        )


def _check_not_linked(session, parent_id: str, child_id: str):
    exists = session.query(ParentChildRelationship.id).filter_by(
        parent_id=parent_id, child_id=child_id
    ).first()
    if exists:
        raise ConflictError(DUPLICATE_MESSAGE)


def resolve_parent(
    session,
    tenant_id: str,
    email: str,
    first_name: str,
    last_name: str,
    phone: Optional[str] = None
) -> Tuple[User, Optional[str]]:
    """
    Find the tenant's parent account for ``email`` or stage a new one.

    Nothing is committed here. For a new account the plaintext temporary
    password is returned so the caller can send the welcome email once its
    transaction has committed; for an existing account it is None.

    Raises:
        ConflictError: Email taken by a user of another tenant or a non-parent
    """
    existing = find_user_by_email(session, email)
    if existing:
        if existing.tenant_id != tenant_id:
            raise ConflictError('User with this email already exists')
        if existing.role != UserRole.PARENT.value:
            raise ConflictError('A non-parent user with this email already exists')
        return existing, None

    temporary_password = credential_service.generate_temporary_password()
    parent = User(
        email=email.strip().lower(),
        password_hash=credential_service.hash_password(temporary_password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=UserRole.PARENT.value,
        tenant_id=tenant_id,
        email_verified=False,
        is_active=True,
        email_verification_token=credential_service.generate_opaque_token(),
        email_verification_expiry=hours_from_now(current_app.config['EMAIL_VERIFICATION_TTL_HOURS']),
    )
    session.add(parent)
    session.flush()
    return parent, temporary_password


def send_welcome(parent: User, temporary_password: Optional[str]) -> bool:
    """Welcome email for a parent account created in the committed transaction."""
    if not temporary_password:
        return False
    sent = email_service.send_parent_welcome_email(
        parent.email, parent.first_name, temporary_password, parent.email_verification_token
    )
    if not sent:
        logger.error(f"Welcome email could not be delivered to parent {parent.email}")
    return sent


def link_parent(
    session,
    child: Child,
    parent: User,
    relationship_type: str,
    is_primary: Optional[bool],
    is_emergency_contact: Optional[bool],
    can_pickup: Optional[bool]
) -> ParentChildRelationship:
    """Create the relationship; caller owns the transaction and the child lock."""
    _check_not_linked(session, parent.id, child.id)

    # The first relationship of a child is always its primary contact
    make_primary = bool(is_primary) or not _has_primary(session, child.id)
    if make_primary:
        _demote_primaries(session, child.id)

    rel = ParentChildRelationship(
        parent_id=parent.id,
        child_id=child.id,
        relationship_type=relationship_type,
        is_primary=make_primary,
        is_emergency_contact=True if is_emergency_contact is None else is_emergency_contact,
        can_pickup=True if can_pickup is None else can_pickup,
    )
    session.add(rel)
    session.flush()
    return rel


def add_new_parent_to_child(
    session,
    child_id: str,
    tenant_id: str,
    email: str,
    first_name: str,
    last_name: str,
    relationship_type: str,
    phone: Optional[str] = None,
    is_primary: Optional[bool] = None,
    is_emergency_contact: Optional[bool] = None,
    can_pickup: Optional[bool] = None
) -> dict:
    """
    Link a parent, given by contact details, to a child.

    The parent account is reused when the email already belongs to a parent
    of this tenant, otherwise a PARENT user with a temporary password is
    created and a welcome email is sent after commit.

    Raises:
        NotFoundError: Child not in tenant
        ConflictError: Already linked, or email owned outside the tenant
    """
    _check_relationship_type(relationship_type)

    try:
        child = _get_child(session, child_id, tenant_id, lock=True)
        parent, temporary_password = resolve_parent(
            session, tenant_id, email, first_name, last_name, phone
        )
        rel = link_parent(session, child, parent, relationship_type,
                    is_primary, is_emergency_contact, can_pickup)
        session.commit()

    except IntegrityError:
        session.rollback()
        raise ConflictError(DUPLICATE_MESSAGE)
    except Exception:
        session.rollback()
        raise

    is_new_parent = temporary_password is not None
    logger.info(
        f"Parent {parent.email} linked to child {child.id} "
        f"(primary={rel.is_primary}, new account={is_new_parent})"
    )
    send_welcome(parent, temporary_password)

    return {
        'relationship': serialize_relationship(rel),
        'isNewParent': is_new_parent,
        'message': 'Parent added to child and welcome email sent' if is_new_parent
        else 'Parent added to child successfully',
    }


def add_existing_parent_to_child(
    session,
    child_id: str,
    parent_id: str,
    tenant_id: str,
    relationship_type: str,
    is_primary: Optional[bool] = None,
    is_emergency_contact: Optional[bool] = None,
    can_pickup: Optional[bool] = None
) -> dict:
    """
    Link an existing PARENT user of the tenant to a child.

    Raises:
        NotFoundError: Child or parent not in tenant
        ConflictError: Pair already linked
    """
    _check_relationship_type(relationship_type)

    try:
        child = _get_child(session, child_id, tenant_id, lock=True)

        parent = session.query(User).filter(
            User.id == parent_id,
            User.tenant_id == tenant_id,
            User.role == UserRole.PARENT.value
        ).first()
        if not parent:
            raise NotFoundError('Parent not found')

        rel = link_parent(session, child, parent, relationship_type,
                    is_primary, is_emergency_contact, can_pickup)
        session.commit()

    except IntegrityError:
        session.rollback()
        raise ConflictError(DUPLICATE_MESSAGE)
    except Exception:
        session.rollback()
        raise

    logger.info(f"Existing parent {parent.email} linked to child {child.id} (primary={rel.is_primary})")
    return {
        'relationship': serialize_relationship(rel),
        'message': 'Existing parent added to child successfully',
    }


def update_parent_child_relationship(
    session,
    relationship_id: str,
    tenant_id: str,
    relationship_type: Optional[str] = None,
    is_primary: Optional[bool] = None,
    is_emergency_contact: Optional[bool] = None,
    can_pickup: Optional[bool] = None
) -> dict:
    """
    Partially update a relationship. None leaves a field unchanged.

    Promoting demotes the child's other relationships. Un-flagging the
    primary hands the flag to the oldest other relationship, and is refused
    when there is none.

    Raises:
        NotFoundError: Relationship not in tenant
        BadRequestError: Invalid relationship type, or sole primary un-flagged
    """
    if relationship_type is not None:
        _check_relationship_type(relationship_type)

    try:
        rel = _get_relationship(session, relationship_id, tenant_id)
        _lock_child_row(session, rel.child_id)

        if is_primary is True and not rel.is_primary:
            _demote_primaries(session, rel.child_id, exclude_id=rel.id)
            rel.is_primary = True
        elif is_primary is False and rel.is_primary:
            successor = _oldest_other(session, rel.child_id, rel.id)
            if not successor:
                raise BadRequestError('Cannot unset the primary flag of the only parent')
            rel.is_primary = False
            session.flush()
            successor.is_primary = True

        if relationship_type is not None:
            rel.relationship_type = relationship_type
        if is_emergency_contact is not None:
            rel.is_emergency_contact = is_emergency_contact
        if can_pickup is not None:
            rel.can_pickup = can_pickup

        session.commit()

    except Exception:
        session.rollback()
        raise

    logger.info(f"Relationship {rel.id} updated (primary={rel.is_primary})")
    return {
        'relationship': serialize_relationship(rel),
        'message': 'Parent-child relationship updated successfully',
    }


def remove_parent_from_child(session, relationship_id: str, tenant_id: str) -> dict:
    """
    Unlink a parent from a child.

    Raises:
        NotFoundError: Relationship not in tenant
        BadRequestError: It is the child's last relationship
    """
    try:
        rel = _get_relationship(session, relationship_id, tenant_id)
        _lock_child_row(session, rel.child_id)

        successor = _oldest_other(session, rel.child_id, rel.id)
        if not successor:
            raise BadRequestError('Cannot remove the last parent from a child')

        if rel.is_primary:
            successor.is_primary = True

        child_id = rel.child_id
        session.delete(rel)
        session.commit()

    except Exception:
        session.rollback()
        raise

    logger.info(f"Relationship {relationship_id} removed from child {child_id}")
    return {'message': 'Parent removed from child successfully'}


def get_child_parents(session, child_id: str, tenant_id: str) -> List[dict]:
    """Relationships of a child, primary first then oldest first."""
    child = _get_child(session, child_id, tenant_id)

    relationships = session.query(ParentChildRelationship).filter(
        ParentChildRelationship.child_id == child.id
    ).order_by(
        ParentChildRelationship.is_primary.desc(),
        ParentChildRelationship.created_at.asc()
    ).all()

    return [
        {
            'relationshipId': rel.id,
            'parent': {
                'id': rel.parent.id,
                'firstName': rel.parent.first_name,
                'lastName': rel.parent.last_name,
                'email': rel.parent.email,
                'phone': rel.parent.phone,
                'emailVerified': rel.parent.email_verified,
                'lastLoginAt': iso(rel.parent.last_login_at),
            },
            'relationship': rel.relationship_type,
            'isPrimary': rel.is_primary,
            'isEmergencyContact': rel.is_emergency_contact,
            'canPickup': rel.can_pickup,
            'createdAt': iso(rel.created_at),
        }
        for rel in relationships
    ]


def get_available_parents(session, tenant_id: str, search: Optional[str] = None) -> List[dict]:
    """Parents of the tenant, optionally filtered by name or email substring."""
    query = session.query(User).filter(
        User.tenant_id == tenant_id,
        User.role == UserRole.PARENT.value
    )

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.email.ilike(pattern)
        ))

    parents = query.order_by(User.first_name.asc(), User.last_name.asc()).all()

    results = []
    for parent in parents:
        children = [rel.child for rel in parent.parent_child_relationships
                    if rel.child.deleted_at is None]
        results.append({
            'id': parent.id,
            'firstName': parent.first_name,
            'lastName': parent.last_name,
            'email': parent.email,
            'phone': parent.phone,
            'emailVerified': parent.email_verified,
            'childrenCount': len(children),
            'children': [c.summary() for c in children],
        })
    return results
