"""Create final_assets table

Revision ID: 8e4b2d6f0a13
Revises: 3c1f0a9d7b21
Create Date: 2026-10-02 10:31:07.904455

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e4b2d6f0a13'
down_revision: Union[str, Sequence[str], None] = '3c1f0a9d7b21'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'final_assets',
        sa.Column('asset_id', sa.String(), nullable=False),
        sa.Column('job_id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('owner_email', sa.String(), nullable=False),
        sa.Column('owner_name', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('storage_url', sa.String(), nullable=False),
        sa.Column('thumbnail_url', sa.String(), nullable=False),
        sa.Column('duration_seconds', sa.Float(), nullable=False),
        sa.Column('source_clips', sa.JSON(), nullable=False),
        sa.Column('stats', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('asset_id'),
        sa.UniqueConstraint('job_id')
    )
    op.create_index('ix_final_assets_job_id', 'final_assets', ['job_id'])
    op.create_index('ix_final_assets_owner_id', 'final_assets', ['owner_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_final_assets_owner_id', 'final_assets')
    op.drop_index('ix_final_assets_job_id', 'final_assets')
    op.drop_table('final_assets')
