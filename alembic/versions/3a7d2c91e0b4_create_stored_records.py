"""Create stored_records (per-player key-value game state)

Revision ID: 3a7d2c91e0b4
Revises:
Create Date: 2026-10-17 10:05:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3a7d2c91e0b4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    # La app hace create_all al arrancar: solo crear si todavía no existe
    if _table_exists("stored_records"):
        return

    op.create_table(
        "stored_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("namespace", sa.String(length=80), nullable=False),
        sa.Column("key", sa.String(length=120), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("namespace", "key", name="uq_stored_records_namespace_key"),
    )
    op.create_index("ix_stored_records_id", "stored_records", ["id"])
    op.create_index("ix_stored_records_namespace", "stored_records", ["namespace"])
    op.create_index("ix_stored_records_key", "stored_records", ["key"])


def downgrade() -> None:
    if not _table_exists("stored_records"):
        return
    op.drop_index("ix_stored_records_key", table_name="stored_records")
    op.drop_index("ix_stored_records_namespace", table_name="stored_records")
    op.drop_index("ix_stored_records_id", table_name="stored_records")
    op.drop_table("stored_records")
