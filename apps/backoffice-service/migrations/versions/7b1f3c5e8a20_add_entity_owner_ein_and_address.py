"""add entity owner ein and address

Revision ID: 7b1f3c5e8a20
Revises: 4d2e9a71c0b3
Create Date: 2026-10-19 09:41:07.552913

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7b1f3c5e8a20'
down_revision: Union[str, None] = '4d2e9a71c0b3'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column('entity_owners', sa.Column('ein', sa.String(length=20), nullable=True))
    op.add_column('entity_owners', sa.Column('address', sa.Text(), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column('entity_owners', 'address')
    op.drop_column('entity_owners', 'ein')
