"""add branches and branch contacts

Revision ID: 9d4b2e6f1c37
Revises: 7c3e91b5d2a8
Create Date: 2026-10-19 18:12:47.530921

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9d4b2e6f1c37'
down_revision: Union[str, None] = '7c3e91b5d2a8'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    inspector = sa.inspect(op.get_bind())
    tables = set(inspector.get_table_names())
    if 'branches' not in tables:
        op.create_table(
            'branches',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('branch_code', sa.String(), nullable=True, unique=True),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('phone', sa.String(), nullable=False),
            sa.Column('alternate_phone', sa.String(), nullable=True),
            sa.Column('drug_license_number', sa.String(), nullable=False),
            sa.Column('gst_number', sa.String(), nullable=False, unique=True),
            sa.Column('pan_number', sa.String(), nullable=False, unique=True),
            sa.Column('gst_address', sa.Text(), nullable=False),
            sa.Column('city', sa.String(), nullable=False),
            sa.Column('state', sa.String(), nullable=False),
            sa.Column('pincode', sa.String(), nullable=False),
            sa.Column('remarks', sa.Text(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index('ix_branches_id', 'branches', ['id'])
        op.create_index('ix_branches_name', 'branches', ['name'])
        op.create_index('ix_branches_gst_number', 'branches', ['gst_number'])

    warehouse_columns = {c['name'] for c in inspector.get_columns('warehouses')}
    if 'branch_id' not in warehouse_columns:
        with op.batch_alter_table('warehouses') as batch_op:
            batch_op.add_column(sa.Column('branch_id', sa.Integer(), nullable=True))
            batch_op.create_foreign_key('fk_warehouses_branch_id', 'branches', ['branch_id'], ['id'])
        op.create_index('ix_warehouses_branch_id', 'warehouses', ['branch_id'])

    if 'branch_contacts' not in tables:
        op.create_table(
            'branch_contacts',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
            sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id'), nullable=True),
            sa.Column('contact_person_name', sa.String(), nullable=False),
            sa.Column('department', sa.Enum('ADMIN', 'OPERATIONS', 'SALES', 'LOGISTICS',
                                            name='contactdepartment'), nullable=False),
            sa.Column('designation', sa.String(), nullable=False),
            sa.Column('contact_number', sa.String(), nullable=False),
            sa.Column('alternate_contact_person', sa.String(), nullable=True),
            sa.Column('email_address', sa.String(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index('ix_branch_contacts_id', 'branch_contacts', ['id'])
        op.create_index('ix_branch_contacts_branch_id', 'branch_contacts', ['branch_id'])
        op.create_index('ix_branch_contacts_warehouse_id', 'branch_contacts', ['warehouse_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('branch_contacts')
    op.drop_index('ix_warehouses_branch_id', table_name='warehouses')
    with op.batch_alter_table('warehouses') as batch_op:
        batch_op.drop_constraint('fk_warehouses_branch_id', type_='foreignkey')
        batch_op.drop_column('branch_id')
    op.drop_table('branches')
    sa.Enum(name='contactdepartment').drop(op.get_bind(), checkfirst=True)
