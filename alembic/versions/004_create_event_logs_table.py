"""Create event_logs table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18

"""
import os

from alembic import op

# revision identifiers, used by Alembic.
revision = '004'
down_revision = '003'
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_file = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
        "migrations",
        "004_create_event_logs_table.sql"
    )

    with open(sql_file, 'r') as f:
        op.execute(f.read())


def downgrade() -> None:
    op.execute("DROP POLICY IF EXISTS event_logs_tenant_isolation ON event_logs")
    op.execute("DROP TABLE IF EXISTS event_logs CASCADE")
