"""DocumentType model - catalog of documents a tenant collects per child."""
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from daycare.database import Base
from daycare.utils.dates import new_id, utcnow


class DocumentType(Base):
    """Document type (enrollment form, immunization records, ...)."""

    __tablename__ = 'document_type'

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    allowed_formats = Column(JSON, nullable=False, default=list)
    is_required = Column(Boolean, nullable=False, default=False)
    expiry_required = Column(Boolean, nullable=False, default=False)
    max_size_mb = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    tenant = relationship('Tenant', back_populates='document_types')

    def __repr__(self):
        return f"<DocumentType(tenant_id={self.tenant_id}, name='{self.name}')>"
