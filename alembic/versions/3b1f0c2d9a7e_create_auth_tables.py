"""create users, auth, invalid_token and feedback tables

Revision ID: 3b1f0c2d9a7e
Revises:
Create Date: 2026-10-18 10:12:41.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f0c2d9a7e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id_user', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('username', sa.String(length=100), nullable=True),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('date_birth', sa.Date(), nullable=True),
        sa.Column('theme', sa.String(length=20), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('goal', sa.String(length=255), nullable=True),
        sa.Column('experience', sa.String(length=50), nullable=True),
        sa.Column('rating', sa.SmallInteger(), nullable=True),
        sa.Column('public_id_profile_photo', sa.String(length=255), nullable=False),
        sa.Column('url_profile_photo', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id_user'),
    )
    op.create_index('ix_users_id_user', 'users', ['id_user'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'auth',
        sa.Column('id_user', sa.Integer(), nullable=False),
        sa.Column('refresh_token', sa.String(length=1024), nullable=True),
        sa.Column('reset_password_token', sa.String(length=1024), nullable=True),
        sa.Column('reset_password_token_expiration', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['id_user'], ['users.id_user'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id_user'),
    )

    # 只新增不修改；不 cascade，刪人前需先 delete_invalid_tokens_by_id_user
    op.create_table(
        'invalid_token',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_user', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(length=1024), nullable=False),
        sa.Column('token_type', sa.String(length=16), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_user'], ['users.id_user']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invalid_token_id', 'invalid_token', ['id'])
    op.create_index('ix_invalid_token_user_token', 'invalid_token', ['id_user', 'token'])

    op.create_table(
        'feedback',
        sa.Column('id_feedback', sa.Integer(), nullable=False),
        sa.Column('id_user', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_user'], ['users.id_user'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id_feedback'),
    )
    op.create_index('ix_feedback_id_feedback', 'feedback', ['id_feedback'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_feedback_id_feedback', table_name='feedback')
    op.drop_table('feedback')
    op.drop_index('ix_invalid_token_user_token', table_name='invalid_token')
    op.drop_index('ix_invalid_token_id', table_name='invalid_token')
    op.drop_table('invalid_token')
    op.drop_table('auth')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id_user', table_name='users')
    op.drop_table('users')
