"""Dishes, victuals, recipes with ingredients and illustrations; meal type dish reference

Revision ID: 0002_recipes_victuals
Revises: 0001_init
Create Date: 2026-10-18
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_recipes_victuals"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def _header() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _author() -> sa.Column:
    return sa.Column("author_id", sa.Integer(), sa.ForeignKey("people.id", ondelete="SET NULL"))


def upgrade() -> None:
    op.create_table(
        "dishes",
        *_header(),
        sa.Column("dish_type", sa.String(length=128), unique=True),
        _author(),
    )
    op.create_table(
        "victuals",
        *_header(),
        sa.Column("alias", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.String(length=4094)),
        sa.Column("diet", sa.String(length=20), nullable=False, server_default="VEGAN"),
        sa.Column("avatar_id", sa.Integer(), sa.ForeignKey("documents.id")),
        _author(),
    )
    op.create_table(
        "recipes",
        *_header(),
        sa.Column("category", sa.String(length=11), nullable=False, server_default="MAIN_COURSE"),
        sa.Column("title", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.String(length=4094)),
        sa.Column("instruction", sa.String(length=4094)),
        sa.Column("avatar_id", sa.Integer(), sa.ForeignKey("documents.id")),
        _author(),
    )
    op.create_table(
        "ingredients",
        *_header(),
        sa.Column("amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit", sa.String(length=10), nullable=False, server_default="GRAM"),
        sa.Column("victual_id", sa.Integer(), sa.ForeignKey("victuals.id"), nullable=False),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_table(
        "recipe_illustrations",
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True),
    )
    with op.batch_alter_table("meal_types") as batch:
        batch.add_column(sa.Column("dish_id", sa.Integer(), nullable=True))
        batch.create_foreign_key("fk_meal_types_dish", "dishes", ["dish_id"], ["id"], ondelete="SET NULL")


def downgrade() -> None:
    with op.batch_alter_table("meal_types") as batch:
        batch.drop_constraint("fk_meal_types_dish", type_="foreignkey")
        batch.drop_column("dish_id")
    op.drop_table("recipe_illustrations")
    op.drop_table("ingredients")
    op.drop_table("recipes")
    op.drop_table("victuals")
    op.drop_table("dishes")
