"""Models package - exports all SQLAlchemy models."""
from daycare.models.tenant import Tenant, TenantSettings, TenantStatus
from daycare.models.user import User, UserRole
from daycare.models.child import Child, ChildStatus, Gender, MedicalInformation, EmergencyContact
from daycare.models.parent_child_relationship import ParentChildRelationship, RelationshipType
from daycare.models.classroom import Classroom, ClassroomAssignment, StaffClassroomAssignment
from daycare.models.document_type import DocumentType

__all__ = [
    'Tenant', 'TenantSettings', 'TenantStatus',
    'User', 'UserRole',
    'Child', 'ChildStatus', 'Gender', 'MedicalInformation', 'EmergencyContact',
    'ParentChildRelationship', 'RelationshipType',
    'Classroom', 'ClassroomAssignment', 'StaffClassroomAssignment',
    'DocumentType',
]
