"""create boms, materials and shapes tables

Revision ID: 3b9f0c2a7d14
Revises:
Create Date: 2026-10-19 09:12:41.503318

The app also calls Base.metadata.create_all() at import, so each table is
only created when missing. Idempotent on databases that already have them.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b9f0c2a7d14'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(name):
    return name in sa.inspect(op.get_bind()).get_table_names()


def upgrade() -> None:
    if not _has_table("boms"):
        op.create_table(
            "boms",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("currency", sa.String(), nullable=False, server_default="INR"),
            sa.Column("template_id", sa.String(), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_boms_id", "boms", ["id"])

    if not _has_table("materials"):
        op.create_table(
            "materials",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("category", sa.String(), nullable=False, server_default=""),
            sa.Column("density_kg_m3", sa.Float(), nullable=False),
            sa.Column("price", sa.Float(), nullable=False),
            sa.Column("currency", sa.String(), nullable=False, server_default="INR"),
            sa.Column("unit", sa.String(), nullable=False, server_default="kg"),
            sa.Column("notes", sa.String(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_materials_id", "materials", ["id"])

    if not _has_table("shapes"):
        op.create_table(
            "shapes",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("version", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )


def downgrade() -> None:
    op.drop_table("shapes")
    op.drop_index("ix_materials_id", table_name="materials")
    op.drop_table("materials")
    op.drop_index("ix_boms_id", table_name="boms")
    op.drop_table("boms")
