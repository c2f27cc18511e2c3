"""Initial schema: people, documents, access plans & counters, meal types

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _header() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "documents",
        *_header(),
        sa.Column("hash", sa.String(length=64), nullable=False, unique=True),
        sa.Column("type", sa.String(length=63), nullable=False),
        sa.Column("description", sa.String(length=127)),
        sa.Column("content", sa.LargeBinary(), nullable=False),
    )
    op.create_table(
        "people",
        *_header(),
        sa.Column("email", sa.String(length=128), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("group_alias", sa.String(length=5), nullable=False, server_default="USER"),
        sa.Column("gender", sa.String(length=7), nullable=False, server_default="DIVERSE"),
        sa.Column("title", sa.String(length=15)),
        sa.Column("surname", sa.String(length=31), nullable=False),
        sa.Column("forename", sa.String(length=31), nullable=False),
        sa.Column("postcode", sa.String(length=15)),
        sa.Column("street", sa.String(length=63)),
        sa.Column("city", sa.String(length=63)),
        sa.Column("country", sa.String(length=63)),
        sa.Column("avatar_id", sa.Integer(), sa.ForeignKey("documents.id")),
    )
    op.create_table(
        "access_plans",
        *_header(),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("people.id", ondelete="CASCADE"), nullable=False),
        sa.Column("application", sa.String(length=128), nullable=False),
        sa.Column("variant", sa.String(length=5), nullable=False, server_default="ALPHA"),
        sa.Column("alias", sa.String(length=64), nullable=False, unique=True),
        sa.UniqueConstraint("tenant_id", "application", name="uq_access_plans_tenant_application"),
    )
    op.create_table(
        "access_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("access_plans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.SmallInteger(), nullable=False),
        sa.Column("month", sa.SmallInteger(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("plan_id", "year", "month", name="uq_access_counters_period"),
    )
    op.create_table(
        "meal_types",
        *_header(),
        sa.Column("course_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("course_type", sa.String(length=11), nullable=False, server_default="MAIN_COURSE"),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("people.id", ondelete="SET NULL")),
    )
    op.create_index("ix_meal_types_course_number", "meal_types", ["course_number"])


def downgrade() -> None:
    op.drop_index("ix_meal_types_course_number", table_name="meal_types")
    op.drop_table("meal_types")
    op.drop_table("access_counters")
    op.drop_table("access_plans")
    op.drop_table("people")
    op.drop_table("documents")
