"""Initial schema: tenants

Revision ID: 001
Revises: 
Create Date: 2026-10-18

"""
import os

from alembic import op

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_file = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
        "migrations",
        "001_initial_schema.sql"
    )

    with open(sql_file, 'r') as f:
        op.execute(f.read())


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS tenants CASCADE")
