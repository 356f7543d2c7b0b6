"""create video tables

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-09-14

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a7c1e2d3f4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Chat messages - finished videos are mirrored onto the message that requested them
    op.create_table(
        'chat_messages',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('conversation_id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='assistant'),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('media_type', sa.String(), nullable=True),
        sa.Column('media_status', sa.String(), nullable=True),
        sa.Column('media_url', sa.String(), nullable=True),
        sa.Column('media_thumbnail_url', sa.String(), nullable=True),
        sa.Column('media_duration', sa.Float(), nullable=True),
        sa.Column('media_blob_key', sa.String(), nullable=True),
        sa.Column('media_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_chat_messages_user'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_chat_messages_conversation_id', 'chat_messages', ['conversation_id'])
    op.create_index('ix_chat_messages_user_id', 'chat_messages', ['user_id'])

    # Provider keys - encrypted, tried in creation order
    op.create_table(
        'video_provider_keys',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('encrypted_key', sa.Text(), nullable=False),
        sa.Column('key_suffix', sa.String(), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('video_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('video_models', sa.JSON(), nullable=True),
        sa.Column('created_by_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], name='fk_video_provider_keys_created_by'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_video_provider_keys_provider', 'video_provider_keys', ['provider'])
    op.create_index('ix_video_provider_keys_created_at', 'video_provider_keys', ['created_at'])

    op.create_table(
        'video_generations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('message_id', sa.String(), nullable=True),
        sa.Column('conversation_id', sa.String(), nullable=True),
        sa.Column('brand_profile_id', sa.String(), nullable=True),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('provider_job_id', sa.String(), nullable=True),
        sa.Column('model', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('video_url', sa.String(), nullable=True),
        sa.Column('thumbnail_url', sa.String(), nullable=True),
        sa.Column('blob_key', sa.String(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.Column('aspect_ratio', sa.String(), nullable=True, server_default='16:9'),
        sa.Column('resolution', sa.String(), nullable=True),
        sa.Column('cost', sa.Float(), nullable=True, server_default='0'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_video_generations_user', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['message_id'], ['chat_messages.id'], name='fk_video_generations_message', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('pending', 'generating', 'complete', 'error')",
            name='ck_video_generations_status',
        ),
    )
    op.create_index('ix_video_generations_user_id', 'video_generations', ['user_id'])
    op.create_index('ix_video_generations_conversation_id', 'video_generations', ['conversation_id'])
    op.create_index('ix_video_generations_brand_profile_id', 'video_generations', ['brand_profile_id'])
    op.create_index('ix_video_generations_status', 'video_generations', ['status'])
    op.create_index('ix_video_generations_created_at', 'video_generations', ['created_at'])


def downgrade() -> None:
    op.drop_table('video_generations')
    op.drop_table('video_provider_keys')
    op.drop_table('chat_messages')
    op.drop_table('users')
