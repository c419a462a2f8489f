"""add categories, hospitals and utilization details

Revision ID: 7c3e91b5d2a8
Revises: 1a2f6c0d9e41
Create Date: 2026-10-19 16:40:02.118305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c3e91b5d2a8'
down_revision: Union[str, None] = '1a2f6c0d9e41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NEW_COLUMNS = [
    ('products', sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True)),
    ('doctors', sa.Column('hospital_id', sa.Integer(), sa.ForeignKey('hospitals.id'), nullable=True)),
    ('stock_movements', sa.Column('hospital_id', sa.Integer(), sa.ForeignKey('hospitals.id'), nullable=True)),
    ('stock_movements', sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id'), nullable=True)),
    ('stock_movements', sa.Column('patient_name', sa.String(), nullable=True)),
    ('stock_movements', sa.Column('case_number', sa.String(), nullable=True)),
]


def upgrade() -> None:
    """Upgrade schema."""
    inspector = sa.inspect(op.get_bind())
    tables = set(inspector.get_table_names())
    # The baseline builds from current metadata, so fresh databases already have all of this
    if 'categories' not in tables:
        op.create_table(
            'categories',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False, unique=True),
            sa.Column('code', sa.String(), nullable=True, unique=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('parent_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_by', sa.String(), nullable=True),
            sa.Column('updated_by', sa.String(), nullable=True),
        )
        op.create_index('ix_categories_id', 'categories', ['id'])
        op.create_index('ix_categories_name', 'categories', ['name'])
    if 'hospitals' not in tables:
        op.create_table(
            'hospitals',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False, unique=True),
            sa.Column('hospital_type', sa.String(), nullable=True),
            sa.Column('address', sa.Text(), nullable=True),
            sa.Column('city', sa.String(), nullable=True),
            sa.Column('state', sa.String(), nullable=True),
            sa.Column('pincode', sa.String(), nullable=True),
            sa.Column('phone', sa.String(), nullable=True),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('contact_person', sa.String(), nullable=True),
            sa.Column('gstin', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_by', sa.String(), nullable=True),
            sa.Column('updated_by', sa.String(), nullable=True),
        )
        op.create_index('ix_hospitals_id', 'hospitals', ['id'])
        op.create_index('ix_hospitals_name', 'hospitals', ['name'])

    for table, column in NEW_COLUMNS:
        existing = {c['name'] for c in inspector.get_columns(table)}
        if column.name not in existing:
            with op.batch_alter_table(table) as batch_op:
                batch_op.add_column(column)
            if (table, column.name) == ('products', 'category_id'):
                op.create_index('ix_products_category_id', 'products', ['category_id'])


def downgrade() -> None:
    """Downgrade schema."""
    for table, column in reversed(NEW_COLUMNS):
        with op.batch_alter_table(table) as batch_op:
            batch_op.drop_column(column.name)
    op.drop_table('hospitals')
    op.drop_table('categories')
