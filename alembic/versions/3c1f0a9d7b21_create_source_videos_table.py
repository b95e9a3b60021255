"""Create source_videos table

Revision ID: 3c1f0a9d7b21
Revises:
Create Date: 2026-10-02 10:14:52.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0a9d7b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'source_videos',
        sa.Column('video_id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('video_url', sa.String(), nullable=False),
        sa.Column('thumbnail_url', sa.String(), nullable=True),
        sa.Column('duration', sa.Float(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('video_id')
    )
    op.create_index('ix_source_videos_owner_id', 'source_videos', ['owner_id'])
    op.create_index('ix_source_videos_status', 'source_videos', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_source_videos_status', 'source_videos')
    op.drop_index('ix_source_videos_owner_id', 'source_videos')
    op.drop_table('source_videos')
