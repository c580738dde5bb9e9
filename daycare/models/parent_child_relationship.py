"""ParentChildRelationship model - links a PARENT user to a child."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from daycare.database import Base
from daycare.utils.dates import new_id, utcnow


class RelationshipType(str, enum.Enum):
    """How a parent is related to the child."""
    MOTHER = 'MOTHER'
    FATHER = 'FATHER'
    GUARDIAN = 'GUARDIAN'
    OTHER = 'OTHER'


class ParentChildRelationship(Base):
    """
    Parent <-> child link.

    At most one relationship per child has ``is_primary`` set, and a
    (parent, child) pair can only be linked once.
    """

    __tablename__ = 'parent_child_relationship'
    __table_args__ = (
        UniqueConstraint('parent_id', 'child_id', name='uq_parent_child'),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    parent_id = Column(String(36), ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False)
    child_id = Column(String(36), ForeignKey('child.id', ondelete='CASCADE'), nullable=False, index=True)
    relationship_type = Column('relationship', String(20), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    is_emergency_contact = Column(Boolean, nullable=False, default=True)
    can_pickup = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    parent = relationship('User', back_populates='parent_child_relationships')
    child = relationship('Child', back_populates='parent_relationships')

    def __repr__(self):
        return (
            f"<ParentChildRelationship(parent_id={self.parent_id}, child_id={self.child_id}, "
            f"primary={self.is_primary})>"
        )
