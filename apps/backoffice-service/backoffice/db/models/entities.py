import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, CheckConstraint, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Entity(Base):
    __tablename__ = 'entities'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id'), nullable=False)
    display_id = Column(String(64), nullable=True)
    entity_name = Column(Text, nullable=True)
    entity_type = Column(String(64), nullable=True)  # LLC, Corporation, Trust, ...
    ein = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    owners = relationship(
        "EntityOwner",
        foreign_keys="EntityOwner.entity_id",
        back_populates="entity",
        order_by="EntityOwner.created_at",
    )

    __table_args__ = (
        Index('idx_entities_organization_id', 'organization_id'),
    )


class Borrower(Base):
    __tablename__ = 'borrowers'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id'), nullable=False)
    display_id = Column(String(64), nullable=True)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('idx_borrowers_organization_id', 'organization_id'),
    )

    @property
    def full_name(self):
        parts = [p.strip() for p in (self.first_name, self.last_name) if p and p.strip()]
        return " ".join(parts) or None


class EntityOwner(Base):
    """One ownership edge: ``entity_id`` is owned by an entity, a borrower, or a free-text owner."""
    __tablename__ = 'entity_owners'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id'), nullable=False)
    entity_id = Column(UUID(as_uuid=True), ForeignKey('entities.id', ondelete='CASCADE'), nullable=False)
    entity_owner_id = Column(UUID(as_uuid=True), ForeignKey('entities.id', ondelete='SET NULL'), nullable=True)
    borrower_id = Column(UUID(as_uuid=True), ForeignKey('borrowers.id', ondelete='SET NULL'), nullable=True)
    name = Column(Text, nullable=True)
    title = Column(Text, nullable=True)
    member_type = Column(String(20), nullable=True)  # 'individual'|'entity'
    ownership_percent = Column(Numeric(6, 3), nullable=True)
    ssn_last4 = Column(String(4), nullable=True)
    ein = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    entity = relationship("Entity", foreign_keys=[entity_id], back_populates="owners")

    __table_args__ = (
        Index('idx_entity_owners_entity_id_created_at', 'entity_id', 'created_at'),
        Index('idx_entity_owners_entity_owner_id', 'entity_owner_id'),
        Index('idx_entity_owners_borrower_id', 'borrower_id'),
        CheckConstraint(
            "ownership_percent IS NULL OR (ownership_percent >= 0 AND ownership_percent <= 100)",
            name='ck_entity_owners_percent_range',
        ),
        CheckConstraint(
            "member_type IS NULL OR lower(member_type) in ('individual','entity')",
            name='ck_entity_owners_member_type',
        ),
    )
