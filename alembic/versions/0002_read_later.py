"""add read-later flag, feed ids and the read_later candidate table

Revision ID: 0002_read_later
Revises: 0001_initial
Create Date: 2026-09-28

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_read_later'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table('bookmarks') as batch_op:
        batch_op.add_column(
            sa.Column('readlater', sa.Boolean(), nullable=False, server_default=sa.text('0'))
        )
        batch_op.create_index('ix_bookmarks_readlater', ['readlater'])

    with op.batch_alter_table('users') as batch_op:
        batch_op.add_column(sa.Column('feed_id', sa.String(), nullable=True))
        batch_op.create_index('ix_users_feed_id', ['feed_id'])
        batch_op.create_unique_constraint('uq_users_feed_id', ['feed_id'])

    op.create_table(
        'read_later',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('bookmark_id', sa.String(), sa.ForeignKey('bookmarks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('retrieval_attempt_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('retrieval_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('retrieval_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('byline', sa.String(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('content_type', sa.String(), nullable=True),
        sa.UniqueConstraint('bookmark_id', name='uq_read_later_bookmark_id'),
    )
    op.create_index('ix_read_later_user_id', 'read_later', ['user_id'])
    op.create_index('ix_read_later_retrieval_status', 'read_later', ['retrieval_status'])


def downgrade() -> None:
    op.drop_index('ix_read_later_retrieval_status', table_name='read_later')
    op.drop_index('ix_read_later_user_id', table_name='read_later')
    op.drop_table('read_later')
    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_constraint('uq_users_feed_id', type_='unique')
        batch_op.drop_index('ix_users_feed_id')
        batch_op.drop_column('feed_id')
    with op.batch_alter_table('bookmarks') as batch_op:
        batch_op.drop_index('ix_bookmarks_readlater')
        batch_op.drop_column('readlater')
