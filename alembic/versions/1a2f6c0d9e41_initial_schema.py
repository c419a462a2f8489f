"""initial schema

Revision ID: 1a2f6c0d9e41
Revises:
Create Date: 2026-10-19 10:12:44.318027

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from medsupply.database import Base
import medsupply.models  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = '1a2f6c0d9e41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table that does not exist yet.

    Databases first brought up by the application's own create_all already
    hold these tables; they are left untouched and only stamped.
    """
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())
    missing = [table for table in Base.metadata.sorted_tables if table.name not in existing]
    Base.metadata.create_all(bind=conn, tables=missing)


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
