"""create users tours reviews

Revision ID: 3f1a9c2d7b54
Revises:
Create Date: 2026-10-19 12:04:31.218440

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7b54'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('user', 'guide', 'lead-guide', 'admin', name='userrole')
difficulty = sa.Enum('easy', 'medium', 'difficult', name='difficulty')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('user',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('sid', sa.String(length=22), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('photo', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('password_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('password_reset_token', sa.String(length=64), nullable=True),
        sa.Column('password_reset_expires', sa.DateTime(timezone=True), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_sid'), 'user', ['sid'], unique=True)
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)
    op.create_index(op.f('ix_user_password_reset_token'), 'user', ['password_reset_token'], unique=False)

    op.create_table('tour',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('sid', sa.String(length=22), nullable=False),
        sa.Column('name', sa.String(length=40), nullable=False),
        sa.Column('slug', sa.String(), nullable=True),
        sa.Column('secret_tour', sa.Boolean(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('max_group_size', sa.Integer(), nullable=False),
        sa.Column('difficulty', difficulty, nullable=False),
        sa.Column('ratings_average', sa.Float(), nullable=False),
        sa.Column('ratings_quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('price_discount', sa.Float(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_cover', sa.String(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('start_dates', sa.JSON(), nullable=False),
        sa.Column('start_location', sa.JSON(none_as_null=True), nullable=True),
        sa.Column('locations', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index(op.f('ix_tour_sid'), 'tour', ['sid'], unique=True)
    op.create_index(op.f('ix_tour_slug'), 'tour', ['slug'], unique=False)
    op.create_index('ix_tour_price_ratings_average', 'tour', ['price', 'ratings_average'], unique=False)

    op.create_table('tour_guides',
        sa.Column('tour_sid', sa.String(length=22), nullable=False),
        sa.Column('user_sid', sa.String(length=22), nullable=False),
        sa.ForeignKeyConstraint(['tour_sid'], ['tour.sid'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_sid'], ['user.sid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('tour_sid', 'user_sid')
    )

    op.create_table('review',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('sid', sa.String(length=22), nullable=False),
        sa.Column('review', sa.Text(), nullable=False),
        sa.Column('rating', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tour_sid', sa.String(length=22), nullable=False),
        sa.Column('user_sid', sa.String(length=22), nullable=False),
        sa.ForeignKeyConstraint(['tour_sid'], ['tour.sid'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_sid'], ['user.sid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tour_sid', 'user_sid', name='uq_review_tour_user')
    )
    op.create_index(op.f('ix_review_sid'), 'review', ['sid'], unique=True)
    op.create_index(op.f('ix_review_tour_sid'), 'review', ['tour_sid'], unique=False)
    op.create_index(op.f('ix_review_user_sid'), 'review', ['user_sid'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_review_user_sid'), table_name='review')
    op.drop_index(op.f('ix_review_tour_sid'), table_name='review')
    op.drop_index(op.f('ix_review_sid'), table_name='review')
    op.drop_table('review')
    op.drop_table('tour_guides')
    op.drop_index('ix_tour_price_ratings_average', table_name='tour')
    op.drop_index(op.f('ix_tour_slug'), table_name='tour')
    op.drop_index(op.f('ix_tour_sid'), table_name='tour')
    op.drop_table('tour')
    op.drop_index(op.f('ix_user_password_reset_token'), table_name='user')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_index(op.f('ix_user_sid'), table_name='user')
    op.drop_table('user')
    difficulty.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
