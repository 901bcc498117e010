"""Create data_sources table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18

"""
import os

from alembic import op

# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_file = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
        "migrations",
        "003_create_data_sources_table.sql"
    )

    with open(sql_file, 'r') as f:
        op.execute(f.read())


def downgrade() -> None:
    op.execute("DROP POLICY IF EXISTS data_sources_tenant_isolation ON data_sources")
    op.execute("DROP TABLE IF EXISTS data_sources CASCADE")
