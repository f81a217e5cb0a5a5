"""
Alembic migration: Create users and sauces tables.

Users hold the normalised email and bcrypt hash. Sauces hold the rating
counters, the voter id arrays and the optimistic concurrency version, with
CHECK constraints keeping counters equal to the voter array sizes and the two
arrays disjoint.

Revision ID: 001
Revises:
Create Date: 2024-03-02 10:14:07.511302
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users and sauces with their indexes and constraints."""
    op.create_table(
        'users',
        sa.Column(
            'id',
            postgresql.UUID(as_uuid=True),
            nullable=False,
            comment='Unique identifier for the record',
        ),
        sa.Column(
            'email',
            sa.String(length=320),
            nullable=False,
            comment='User email address, stored lower-cased',
        ),
        sa.Column(
            'password_hash',
            sa.String(length=255),
            nullable=False,
            comment='bcrypt password hash',
        ),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
            comment='Timestamp when record was last updated',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.CheckConstraint('email = lower(email)', name='ck_users_email_lowercase'),
        comment='Registered accounts',
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'sauces',
        sa.Column(
            'id',
            postgresql.UUID(as_uuid=True),
            nullable=False,
            comment='Unique identifier for the record',
        ),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            nullable=False,
            comment='Owner of the sauce',
        ),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('manufacturer', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column(
            'main_pepper',
            sa.String(length=200),
            nullable=False,
            comment='Main spicy ingredient',
        ),
        sa.Column(
            'image_ref',
            sa.String(length=512),
            nullable=False,
            comment='Asset store key of the sauce image',
        ),
        sa.Column('heat', sa.Integer(), nullable=False),
        sa.Column('likes', sa.Integer(), nullable=False),
        sa.Column('dislikes', sa.Integer(), nullable=False),
        sa.Column(
            'users_liked',
            postgresql.ARRAY(postgresql.UUID(as_uuid=True)),
            nullable=False,
        ),
        sa.Column(
            'users_disliked',
            postgresql.ARRAY(postgresql.UUID(as_uuid=True)),
            nullable=False,
        ),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
            comment='Timestamp when record was last updated',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_sauces'),
        sa.ForeignKeyConstraint(
            ['user_id'],
            ['users.id'],
            name='fk_sauces_user_id_users',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint('heat BETWEEN 1 AND 10', name='ck_sauces_heat_range'),
        sa.CheckConstraint('likes >= 0', name='ck_sauces_likes_non_negative'),
        sa.CheckConstraint('dislikes >= 0', name='ck_sauces_dislikes_non_negative'),
        sa.CheckConstraint(
            'likes = coalesce(cardinality(users_liked), 0)',
            name='ck_sauces_likes_match_voters',
        ),
        sa.CheckConstraint(
            'dislikes = coalesce(cardinality(users_disliked), 0)',
            name='ck_sauces_dislikes_match_voters',
        ),
        sa.CheckConstraint(
            'NOT (users_liked && users_disliked)',
            name='ck_sauces_voters_disjoint',
        ),
        comment='Rated sauces',
    )
    op.create_index('ix_sauces_user_id', 'sauces', ['user_id'], unique=False)


def downgrade() -> None:
    """Drop sauces and users."""
    op.drop_index('ix_sauces_user_id', table_name='sauces')
    op.drop_table('sauces')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
