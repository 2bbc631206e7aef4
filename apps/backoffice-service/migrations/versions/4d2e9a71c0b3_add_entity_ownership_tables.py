"""add entity ownership tables

Revision ID: 4d2e9a71c0b3
Revises:
Create Date: 2026-10-12 14:02:51.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4d2e9a71c0b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('slug', sa.String(), nullable=True, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_table(
        'entities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('display_id', sa.String(length=64), nullable=True),
        sa.Column('entity_name', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(length=64), nullable=True),
        sa.Column('ein', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_index('idx_entities_organization_id', 'entities', ['organization_id'], unique=False)
    op.create_table(
        'borrowers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('display_id', sa.String(length=64), nullable=True),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_index('idx_borrowers_organization_id', 'borrowers', ['organization_id'], unique=False)
    op.create_table(
        'entity_owners',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('entities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('entity_owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('entities.id', ondelete='SET NULL'), nullable=True),
        sa.Column('borrower_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('borrowers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('member_type', sa.String(length=20), nullable=True),
        sa.Column('ownership_percent', sa.Numeric(6, 3), nullable=True),
        sa.Column('ssn_last4', sa.String(length=4), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "ownership_percent IS NULL OR (ownership_percent >= 0 AND ownership_percent <= 100)",
            name='ck_entity_owners_percent_range',
        ),
        sa.CheckConstraint(
            "member_type IS NULL OR lower(member_type) in ('individual','entity')",
            name='ck_entity_owners_member_type',
        ),
    )
    op.create_index('idx_entity_owners_entity_id_created_at', 'entity_owners', ['entity_id', 'created_at'], unique=False)
    op.create_index('idx_entity_owners_entity_owner_id', 'entity_owners', ['entity_owner_id'], unique=False)
    op.create_index('idx_entity_owners_borrower_id', 'entity_owners', ['borrower_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_entity_owners_borrower_id', table_name='entity_owners')
    op.drop_index('idx_entity_owners_entity_owner_id', table_name='entity_owners')
    op.drop_index('idx_entity_owners_entity_id_created_at', table_name='entity_owners')
    op.drop_table('entity_owners')
    op.drop_index('idx_borrowers_organization_id', table_name='borrowers')
    op.drop_table('borrowers')
    op.drop_index('idx_entities_organization_id', table_name='entities')
    op.drop_table('entities')
    op.drop_table('organizations')
