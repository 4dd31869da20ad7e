"""Moderation schema: users, content kinds, reports and moderation ledgers

Revision ID: 20261018_001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20261018_001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

BASE_CONTENT_TABLES = ('articles', 'videos', 'courses', 'live_events', 'podcasts', 'books')


def _moderation_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('moderation_status', sa.String(length=16), nullable=False, server_default='visible'),
        sa.Column('moderation_reason', sa.String(length=500), nullable=True),
        sa.Column('moderation_note', sa.Text(), nullable=True),
        sa.Column('moderated_by', sa.BigInteger(), nullable=True),
        sa.Column('moderated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    # Create users table
    op.create_table('users',
    sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column('username', sa.String(length=64), nullable=False),
    sa.Column('name', sa.String(length=128), nullable=False, server_default=''),
    sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
    sa.Column('creation_blocked', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('creation_blocked_reason', sa.String(length=500), nullable=True),
    sa.Column('publishing_blocked', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('publishing_blocked_reason', sa.String(length=500), nullable=True),
    sa.Column('cooldown_until', sa.DateTime(), nullable=True),
    sa.Column('controls_updated_by', sa.BigInteger(), nullable=True),
    sa.Column('controls_updated_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("role IN ('user','creator','admin')", name='chk_user_role'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)
    op.create_index('idx_users_role_publishing_blocked', 'users', ['role', 'publishing_blocked'], unique=False)

    # Create base content tables
    for table in BASE_CONTENT_TABLES:
        op.create_table(table,
        *_moderation_columns(),
        sa.Column('creator_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=220), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f(f'ix_{table}_creator_id'), table, ['creator_id'], unique=False)
        op.create_index(op.f(f'ix_{table}_slug'), table, ['slug'], unique=False)
        op.create_index(op.f(f'ix_{table}_status'), table, ['status'], unique=False)
        op.create_index(op.f(f'ix_{table}_moderation_status'), table, ['moderation_status'], unique=False)

    # Create comments table
    op.create_table('comments',
    *_moderation_columns(),
    sa.Column('user_id', sa.BigInteger(), nullable=False),
    sa.Column('target_kind', sa.String(length=16), nullable=False),
    sa.Column('target_id', sa.BigInteger(), nullable=False),
    sa.Column('content', sa.Text(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_comments_user_id'), 'comments', ['user_id'], unique=False)
    op.create_index(op.f('ix_comments_target_id'), 'comments', ['target_id'], unique=False)
    op.create_index(op.f('ix_comments_moderation_status'), 'comments', ['moderation_status'], unique=False)

    # Create reviews table
    op.create_table('reviews',
    *_moderation_columns(),
    sa.Column('user_id', sa.BigInteger(), nullable=False),
    sa.Column('target_kind', sa.String(length=16), nullable=False),
    sa.Column('target_id', sa.BigInteger(), nullable=False),
    sa.Column('rating', sa.SmallInteger(), nullable=False),
    sa.Column('review', sa.Text(), nullable=False, server_default=''),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reviews_user_id'), 'reviews', ['user_id'], unique=False)
    op.create_index(op.f('ix_reviews_target_id'), 'reviews', ['target_id'], unique=False)
    op.create_index(op.f('ix_reviews_moderation_status'), 'reviews', ['moderation_status'], unique=False)

    # Create content_reports table
    op.create_table('content_reports',
    sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column('reporter_id', sa.BigInteger(), nullable=False),
    sa.Column('target_kind', sa.String(length=16), nullable=False),
    sa.Column('target_id', sa.BigInteger(), nullable=False),
    sa.Column('reason_code', sa.String(length=24), nullable=False),
    sa.Column('note', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
    sa.Column('reviewed_by', sa.BigInteger(), nullable=True),
    sa.Column('reviewed_at', sa.DateTime(), nullable=True),
    sa.Column('resolution_action', sa.String(length=16), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint(
        "reason_code IN ('spam','abuse','misinformation','sexual','violence','hate','scam','copyright','other')",
        name='chk_content_report_reason',
    ),
    sa.CheckConstraint("status IN ('open','reviewed','dismissed')", name='chk_content_report_status'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('reporter_id', 'target_kind', 'target_id', name='uq_content_reports_reporter_target')
    )
    op.create_index(op.f('ix_content_reports_reporter_id'), 'content_reports', ['reporter_id'], unique=False)
    op.create_index(
        'idx_content_reports_target_status', 'content_reports', ['target_kind', 'target_id', 'status'], unique=False
    )
    op.create_index('idx_content_reports_status_created', 'content_reports', ['status', 'created_at'], unique=False)

    # Create moderation_events table (append-only)
    op.create_table('moderation_events',
    sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column('target_kind', sa.String(length=16), nullable=False),
    sa.Column('target_id', sa.BigInteger(), nullable=False),
    sa.Column('actor_id', sa.BigInteger(), nullable=False),
    sa.Column('action', sa.String(length=16), nullable=False),
    sa.Column('from_status', sa.String(length=16), nullable=False),
    sa.Column('to_status', sa.String(length=16), nullable=False),
    sa.Column('reason_text', sa.String(length=500), nullable=False),
    sa.Column('note', sa.Text(), nullable=True),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("action IN ('hide','unhide','restrict')", name='chk_moderation_event_action'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_moderation_events_actor_id'), 'moderation_events', ['actor_id'], unique=False)
    op.create_index(
        'idx_moderation_events_target_created',
        'moderation_events',
        ['target_kind', 'target_id', 'created_at'],
        unique=False,
    )
    op.create_index('idx_moderation_events_created', 'moderation_events', ['created_at'], unique=False)

    # Create user_moderation_events table (append-only)
    op.create_table('user_moderation_events',
    sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column('user_id', sa.BigInteger(), nullable=False),
    sa.Column('actor_id', sa.BigInteger(), nullable=False),
    sa.Column('action', sa.String(length=24), nullable=False),
    sa.Column('reason_text', sa.String(length=500), nullable=False),
    sa.Column('note', sa.Text(), nullable=True),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_moderation_events_actor_id'), 'user_moderation_events', ['actor_id'], unique=False)
    op.create_index(
        'idx_user_moderation_events_user_created',
        'user_moderation_events',
        ['user_id', 'action', 'created_at'],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table('user_moderation_events')
    op.drop_table('moderation_events')
    op.drop_table('content_reports')
    op.drop_table('reviews')
    op.drop_table('comments')
    for table in reversed(BASE_CONTENT_TABLES):
        op.drop_table(table)
    op.drop_table('users')
