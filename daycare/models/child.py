"""Child model and the records owned by a child."""
import enum
from sqlalchemy import Column, String, Text, Boolean, Date, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from daycare.database import Base
from daycare.utils.dates import new_id, utcnow


class ChildStatus(str, enum.Enum):
    """Enrollment status."""
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    WAITLIST = 'WAITLIST'
    WITHDRAWN = 'WITHDRAWN'


class Gender(str, enum.Enum):
    MALE = 'MALE'
    FEMALE = 'FEMALE'
    OTHER = 'OTHER'


class Child(Base):
    """Child enrolled (or waitlisted) at a tenant. Soft-deleted via ``deleted_at``."""

    __tablename__ = 'child'

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey('tenant.id'), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=True)
    status = Column(String(20), nullable=False, default=ChildStatus.ACTIVE.value)
    enrollment_date = Column(Date, nullable=True)
    profile_photo = Column(String(500), nullable=True)  # URL in external blob storage
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey('app_user.id', ondelete='SET NULL'), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='children')
    parent_relationships = relationship(
        'ParentChildRelationship',
        back_populates='child',
        cascade='all, delete-orphan'
    )
    medical_information = relationship(
        'MedicalInformation',
        back_populates='child',
        uselist=False,
        cascade='all, delete-orphan'
    )
    emergency_contacts = relationship(
        'EmergencyContact',
        back_populates='child',
        cascade='all, delete-orphan'
    )
    classroom_assignments = relationship(
        'ClassroomAssignment',
        back_populates='child',
        cascade='all, delete-orphan'
    )

    @property
    def active_assignment(self):
        """The single active classroom assignment, if any."""
        return next((a for a in self.classroom_assignments if a.is_active), None)

    def summary(self):
        return {'id': self.id, 'firstName': self.first_name, 'lastName': self.last_name}

    def __repr__(self):
        return f"<Child(id={self.id}, name='{self.first_name} {self.last_name}')>"


class MedicalInformation(Base):
    """Medical details for a child (list fields are JSON arrays)."""

    __tablename__ = 'medical_information'

    id = Column(String(36), primary_key=True, default=new_id)
    child_id = Column(String(36), ForeignKey('child.id', ondelete='CASCADE'), nullable=False, unique=True)
    blood_type = Column(String(10), nullable=True)
    allergies = Column(JSON, nullable=True)
    medications = Column(JSON, nullable=True)
    medical_conditions = Column(JSON, nullable=True)
    doctor_name = Column(String(200), nullable=True)
    doctor_phone = Column(String(50), nullable=True)
    hospital_preference = Column(String(200), nullable=True)
    insurance_provider = Column(String(200), nullable=True)
    insurance_policy_number = Column(String(100), nullable=True)
    additional_notes = Column(Text, nullable=True)

    child = relationship('Child', back_populates='medical_information')


class EmergencyContact(Base):
    """Non-parent contact reachable in an emergency."""

    __tablename__ = 'emergency_contact'

    id = Column(String(36), primary_key=True, default=new_id)
    child_id = Column(String(36), ForeignKey('child.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    relationship_label = Column('relationship', String(100), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255), nullable=True)
    is_authorized_pickup = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    child = relationship('Child', back_populates='emergency_contacts')
