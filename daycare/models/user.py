"""User model - every person who can sign in (staff, parents, platform admins)."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from daycare.database import Base
from daycare.utils.dates import new_id, utcnow


class UserRole(str, enum.Enum):
    """Platform roles."""
    SUPER_ADMIN = 'SUPER_ADMIN'
    BUSINESS_ADMIN = 'BUSINESS_ADMIN'
    EDUCATOR = 'EDUCATOR'
    PARENT = 'PARENT'


class User(Base):
    """
    User model.

    A user is created in one of three ways:
    - self-registration: unverified, with an email verification token
    - staff invitation: no password, ``is_invited`` set, invitation token
    - tenant onboarding: verified immediately
    """

    __tablename__ = 'app_user'

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)  # Null until an invitation is accepted
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False)
    tenant_id = Column(String(36), ForeignKey('tenant.id'), nullable=True)  # Null only for SUPER_ADMIN

    email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_token = Column(String(64), nullable=True, unique=True)
    email_verification_expiry = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Staff invitation
    is_invited = Column(Boolean, nullable=False, default=False)
    invitation_token = Column(String(64), nullable=True, unique=True)
    invitation_expires_at = Column(DateTime, nullable=True)
    invited_by = Column(String(36), ForeignKey('app_user.id', ondelete='SET NULL'), nullable=True)
    invited_at = Column(DateTime, nullable=True)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='users', foreign_keys=[tenant_id])
    inviter = relationship('User', remote_side=[id], foreign_keys=[invited_by])
    parent_child_relationships = relationship(
        'ParentChildRelationship',
        back_populates='parent',
        cascade='all, delete-orphan'
    )
    classroom_assignments = relationship(
        'StaffClassroomAssignment',
        back_populates='user',
        cascade='all, delete-orphan'
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def is_pending_invitation(self):
        """True while an invitation has been issued and not yet accepted."""
        return bool(self.is_invited) and not self.email_verified

    def public_dict(self):
        """Fields safe to return to API callers (no password, no tokens)."""
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phone': self.phone,
            'role': self.role,
            'tenantId': self.tenant_id,
            'emailVerified': self.email_verified,
            'isActive': self.is_active,
            'isInvited': self.is_invited,
        }

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
