"""create_gallery_tables

Revision ID: 2c7e1a9d4b10
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '2c7e1a9d4b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'categories',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('show_in_menu', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_categories_slug'), 'categories', ['slug'], unique=True)
    op.create_index(op.f('ix_categories_display_order'), 'categories', ['display_order'], unique=False)

    op.create_table(
        'albums',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.String(length=36), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cover_image_url', sa.String(), nullable=True),
        sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_albums_slug'), 'albums', ['slug'], unique=True)
    op.create_index(op.f('ix_albums_category_id'), 'albums', ['category_id'], unique=False)
    op.create_index(op.f('ix_albums_display_order'), 'albums', ['display_order'], unique=False)

    op.create_table(
        'photos',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('album_id', sa.String(length=36), nullable=False),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('original_url', sa.String(), nullable=False),
        sa.Column('thumbnail_url', sa.String(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_slider_image', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('width', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('height', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['album_id'], ['albums.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_photos_album_id'), 'photos', ['album_id'], unique=False)
    op.create_index(op.f('ix_photos_display_order'), 'photos', ['display_order'], unique=False)
    op.create_index(op.f('ix_photos_is_slider_image'), 'photos', ['is_slider_image'], unique=False)

    # Storage cleanups that failed after their photo row was deleted
    op.create_table(
        'pending_storage_deletions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('file_id', sa.String(length=64), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_pending_storage_deletions_file_id'), 'pending_storage_deletions', ['file_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_pending_storage_deletions_file_id'), table_name='pending_storage_deletions')
    op.drop_table('pending_storage_deletions')

    op.drop_index(op.f('ix_photos_is_slider_image'), table_name='photos')
    op.drop_index(op.f('ix_photos_display_order'), table_name='photos')
    op.drop_index(op.f('ix_photos_album_id'), table_name='photos')
    op.drop_table('photos')

    op.drop_index(op.f('ix_albums_display_order'), table_name='albums')
    op.drop_index(op.f('ix_albums_category_id'), table_name='albums')
    op.drop_index(op.f('ix_albums_slug'), table_name='albums')
    op.drop_table('albums')

    op.drop_index(op.f('ix_categories_display_order'), table_name='categories')
    op.drop_index(op.f('ix_categories_slug'), table_name='categories')
    op.drop_table('categories')
