"""Classroom model and its child/staff assignments."""
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from daycare.database import Base
from daycare.utils.dates import new_id, utcnow


class Classroom(Base):
    """Classroom with a fixed capacity."""

    __tablename__ = 'classroom'

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    age_group = Column(String(50), nullable=True)
    capacity = Column(Integer, nullable=False)
    current_enrollment = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='classrooms')
    assignments = relationship('ClassroomAssignment', back_populates='classroom')
    staff_assignments = relationship('StaffClassroomAssignment', back_populates='classroom')

    def summary(self):
        return {'id': self.id, 'name': self.name, 'ageGroup': self.age_group}

    def __repr__(self):
        return f"<Classroom(id={self.id}, name='{self.name}', capacity={self.capacity})>"


class ClassroomAssignment(Base):
    """Child placed in a classroom. At most one active row per child."""

    __tablename__ = 'classroom_assignment'

    id = Column(String(36), primary_key=True, default=new_id)
    child_id = Column(String(36), ForeignKey('child.id', ondelete='CASCADE'), nullable=False, index=True)
    classroom_id = Column(String(36), ForeignKey('classroom.id'), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    child = relationship('Child', back_populates='classroom_assignments')
    classroom = relationship('Classroom', back_populates='assignments')


class StaffClassroomAssignment(Base):
    """Educator assigned to a classroom."""

    __tablename__ = 'staff_classroom_assignment'
    __table_args__ = (
        UniqueConstraint('user_id', 'classroom_id', name='uq_staff_classroom'),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False)
    classroom_id = Column(String(36), ForeignKey('classroom.id'), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship('User', back_populates='classroom_assignments')
    classroom = relationship('Classroom', back_populates='staff_assignments')
