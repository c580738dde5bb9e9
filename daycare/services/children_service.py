"""
Children service: enrollment, listing, updates and withdrawal.

A child is enrolled together with its first (primary) parent, optional
medical information, emergency contacts and classroom placement, all in one
transaction.
"""
import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from daycare.exceptions import BadRequestError, ConflictError, NotFoundError
from daycare.models import (
    Child, ChildStatus, Classroom, ClassroomAssignment, EmergencyContact, MedicalInformation
)
from daycare.services import parent_relationship_service
from daycare.utils.dates import iso, utcnow

logger = logging.getLogger(__name__)

MEDICAL_FIELDS = {
    'bloodType': 'blood_type',
    'allergies': 'allergies',
    'medications': 'medications',
    'medicalConditions': 'medical_conditions',
    'doctorName': 'doctor_name',
    'doctorPhone': 'doctor_phone',
    'hospitalPreference': 'hospital_preference',
    'insuranceProvider': 'insurance_provider',
    'insurancePolicyNumber': 'insurance_policy_number',
    'additionalNotes': 'additional_notes',
}

UPDATABLE_FIELDS = (
    'first_name', 'last_name', 'date_of_birth', 'gender', 'status',
    'enrollment_date', 'notes', 'profile_photo',
)


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Age in whole years."""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _serialize_medical(info: Optional[MedicalInformation]) -> Optional[dict]:
    if not info:
        return None
    data = {camel: getattr(info, attr) for camel, attr in MEDICAL_FIELDS.items()}
    data['id'] = info.id
    return data


def _serialize_contact(contact: EmergencyContact) -> dict:
    return {
        'id': contact.id,
        'name': contact.name,
        'relationship': contact.relationship_label,
        'phone': contact.phone,
        'email': contact.email,
        'isAuthorizedPickup': contact.is_authorized_pickup,
        'notes': contact.notes,
    }


def serialize_child(child: Child, detailed: bool = False) -> dict:
    assignment = child.active_assignment
    relationships = sorted(
        child.parent_relationships,
        key=lambda r: (not r.is_primary, r.created_at)
    )

    data = {
        'id': child.id,
        'tenantId': child.tenant_id,
        'firstName': child.first_name,
        'lastName': child.last_name,
        'dateOfBirth': iso(child.date_of_birth),
        'age': calculate_age(child.date_of_birth),
        'gender': child.gender,
        'status': child.status,
        'enrollmentDate': iso(child.enrollment_date),
        'profilePhoto': child.profile_photo,
        'notes': child.notes,
        'createdAt': iso(child.created_at),
        'classroom': assignment.classroom.summary() if assignment else None,
        'parents': [
            {
                'id': rel.parent.id,
                'firstName': rel.parent.first_name,
                'lastName': rel.parent.last_name,
                'email': rel.parent.email,
                'phone': rel.parent.phone,
                'relationship': rel.relationship_type,
                'isPrimary': rel.is_primary,
                'isEmergencyContact': rel.is_emergency_contact,
                'canPickup': rel.can_pickup,
            }
            for rel in relationships
        ],
    }

    if detailed:
        data['medicalInformation'] = _serialize_medical(child.medical_information)
        data['emergencyContacts'] = [_serialize_contact(c) for c in child.emergency_contacts]

    return data


def _get_child(session, child_id: str, tenant_id: str) -> Child:
    child = session.query(Child).filter(
        Child.id == child_id,
        Child.tenant_id == tenant_id,
        Child.deleted_at.is_(None)
    ).first()
    if not child:
        raise NotFoundError('Child not found')
    return child


def _lock_classroom(session, classroom_id: str, tenant_id: str) -> Classroom:
    """
    Raises:
        NotFoundError: Classroom not in tenant
        BadRequestError: Classroom is full
    """
    classroom = session.query(Classroom).filter(
        Classroom.id == classroom_id,
        Classroom.tenant_id == tenant_id
    ).with_for_update().first()

    if not classroom:
        raise NotFoundError('Classroom not found')

    if classroom.current_enrollment >= classroom.capacity:
        raise BadRequestError('Classroom is at full capacity')

    return classroom


def _assign_classroom(session, child: Child, classroom: Classroom):
    session.add(ClassroomAssignment(
        child_id=child.id,
        classroom_id=classroom.id,
        start_date=date.today(),
        is_active=True,
    ))
    classroom.current_enrollment += 1


def _close_assignment(assignment: ClassroomAssignment):
    assignment.is_active = False
    assignment.end_date = date.today()
    if assignment.classroom.current_enrollment > 0:
        assignment.classroom.current_enrollment -= 1


def _apply_medical_info(child: Child, medical_info: Dict[str, Any]):
    if child.medical_information is None:
        child.medical_information = MedicalInformation()
    for camel, attr in MEDICAL_FIELDS.items():
        if camel in medical_info:
            setattr(child.medical_information, attr, medical_info[camel])


def _build_contacts(contacts: List[Dict[str, Any]]) -> List[EmergencyContact]:
    return [
        EmergencyContact(
            name=c['name'],
            relationship_label=c['relationship'],
            phone=c['phone'],
            email=c.get('email'),
            is_authorized_pickup=bool(c.get('isAuthorizedPickup', False)),
            notes=c.get('notes'),
        )
        for c in contacts
    ]


def create_child(
    session,
    tenant_id: str,
    created_by: str,
    first_name: str,
    last_name: str,
    date_of_birth: date,
    parent_details: Dict[str, Any],
    gender: Optional[str] = None,
    status: Optional[str] = None,
    enrollment_date: Optional[date] = None,
    classroom_id: Optional[str] = None,
    notes: Optional[str] = None,
    medical_info: Optional[Dict[str, Any]] = None,
    emergency_contacts: Optional[List[Dict[str, Any]]] = None
) -> dict:
    """
    Enroll a child with its primary parent.

    ``parent_details``, ``medical_info`` and ``emergency_contacts`` use the
    camelCase keys of the request payload.

    Raises:
        NotFoundError: Classroom not in tenant
        BadRequestError: Classroom is full
        ConflictError: Parent email owned outside the tenant or by a non-parent
    """
    try:
        classroom = _lock_classroom(session, classroom_id, tenant_id) if classroom_id else None

        child = Child(
            tenant_id=tenant_id,
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            gender=gender,
            status=status or ChildStatus.ACTIVE.value,
            enrollment_date=enrollment_date or date.today(),
            notes=notes,
            created_by=created_by,
        )
        if medical_info:
            _apply_medical_info(child, medical_info)
        if emergency_contacts:
            child.emergency_contacts = _build_contacts(emergency_contacts)

        session.add(child)
        session.flush()

        parent, temporary_password = parent_relationship_service.resolve_parent(
            session,
            tenant_id,
            parent_details['email'],
            parent_details['firstName'],
            parent_details['lastName'],
            parent_details.get('phone'),
        )
        parent_relationship_service.link_parent(
            session, child, parent,
            parent_details['relationship'],
            True,
            parent_details.get('isEmergencyContact'),
            parent_details.get('canPickup'),
        )

        if classroom:
            _assign_classroom(session, child, classroom)

        session.commit()

    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Child enrollment conflict: {e.orig}")
        raise ConflictError('Child could not be enrolled because of conflicting data')
    except Exception:
        session.rollback()
        raise

    logger.info(f"Child enrolled: {child.id} in tenant {tenant_id} (parent {parent.email})")
    parent_relationship_service.send_welcome(parent, temporary_password)

    return serialize_child(child, detailed=True)


def list_children(
    session,
    tenant_id: str,
    status: Optional[str] = None,
    classroom_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20
) -> dict:
    query = session.query(Child).filter(
        Child.tenant_id == tenant_id,
        Child.deleted_at.is_(None)
    )

    if status:
        query = query.filter(Child.status == status)

    if classroom_id:
        query = query.filter(Child.classroom_assignments.any(
            (ClassroomAssignment.classroom_id == classroom_id) & ClassroomAssignment.is_active.is_(True)
        ))

    total = query.count()
    children = query.order_by(Child.created_at.desc(), Child.id) \
        .offset((page - 1) * limit).limit(limit).all()

    return {
        'children': [serialize_child(c) for c in children],
        'pagination': {
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': math.ceil(total / limit) if limit else 0,
        },
    }


def get_child(session, child_id: str, tenant_id: str) -> dict:
    return serialize_child(_get_child(session, child_id, tenant_id), detailed=True)


def update_child(
    session,
    child_id: str,
    tenant_id: str,
    fields: Dict[str, Any],
    classroom_id: Optional[str] = None,
    medical_info: Optional[Dict[str, Any]] = None,
    emergency_contacts: Optional[List[Dict[str, Any]]] = None
) -> dict:
    """
    Update a child.

    ``fields`` maps model attribute names to new values. A new
    ``classroom_id`` closes the active assignment and opens a new one;
    ``emergency_contacts`` replaces the existing list.

    Raises:
        NotFoundError: Child or classroom not in tenant
        BadRequestError: New classroom is full
    """
    try:
        child = _get_child(session, child_id, tenant_id)

        for attr in UPDATABLE_FIELDS:
            if attr in fields:
                setattr(child, attr, fields[attr])

        if medical_info:
            _apply_medical_info(child, medical_info)

        if emergency_contacts is not None:
            child.emergency_contacts = _build_contacts(emergency_contacts)

        current = child.active_assignment
        if classroom_id and (not current or current.classroom_id != classroom_id):
            classroom = _lock_classroom(session, classroom_id, tenant_id)
            if current:
                _close_assignment(current)
            _assign_classroom(session, child, classroom)

        session.commit()

    except Exception:
        session.rollback()
        raise

    session.refresh(child)
    logger.info(f"Child updated: {child.id}")
    return serialize_child(child, detailed=True)


def delete_child(session, child_id: str, tenant_id: str) -> dict:
    """Soft delete: status WITHDRAWN, deleted_at set, classroom seat released."""
    try:
        child = _get_child(session, child_id, tenant_id)

        child.status = ChildStatus.WITHDRAWN.value
        child.deleted_at = utcnow()
        for assignment in child.classroom_assignments:
            if assignment.is_active:
                _close_assignment(assignment)

        session.commit()

    except Exception:
        session.rollback()
        raise

    logger.info(f"Child withdrawn: {child_id}")
    return {'message': 'Child deleted successfully'}
