"""Tenant model - represents each daycare business using the platform."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from daycare.database import Base
from daycare.utils.dates import new_id, utcnow


class TenantStatus(str, enum.Enum):
    """Lifecycle status of a daycare business."""
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    SUSPENDED = 'SUSPENDED'


class Tenant(Base):
    """Tenant model - each daycare business (unit of data partitioning)."""

    __tablename__ = 'tenant'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    subdomain = Column(String(63), nullable=False, unique=True)  # lowercase alnum + hyphen
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=TenantStatus.ACTIVE.value)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    users = relationship('User', back_populates='tenant', foreign_keys='User.tenant_id')
    children = relationship('Child', back_populates='tenant')
    classrooms = relationship('Classroom', back_populates='tenant')
    document_types = relationship('DocumentType', back_populates='tenant')
    settings = relationship('TenantSettings', back_populates='tenant', uselist=False)

    def summary(self):
        """Short form embedded in user payloads."""
        return {'id': self.id, 'name': self.name, 'subdomain': self.subdomain}

    def __repr__(self):
        return f"<Tenant(id={self.id}, subdomain='{self.subdomain}', name='{self.name}')>"


class TenantSettings(Base):
    """Per-tenant operational settings stored as a JSON document."""

    __tablename__ = 'tenant_settings'

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey('tenant.id'), nullable=False, unique=True)
    settings = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    tenant = relationship('Tenant', back_populates='settings')

    def __repr__(self):
        return f"<TenantSettings(tenant_id={self.tenant_id})>"
