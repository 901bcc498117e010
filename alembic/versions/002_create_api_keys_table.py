"""Create api_keys table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
import os

from alembic import op

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_file = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
        "migrations",
        "002_create_api_keys_table.sql"
    )

    with open(sql_file, 'r') as f:
        op.execute(f.read())


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS api_keys CASCADE")
