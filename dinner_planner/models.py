"""SQLAlchemy models: people, documents, access plans, meal types, dishes, victuals and recipes."""

from __future__ import annotations

import enum
import hashlib
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Column,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    SmallInteger,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class RecordHeader:
    """Identity, version and timestamps shared by every entity table."""

    id: Mapped[int] = mapped_column(primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow)

    @declared_attr.directive
    def __mapper_args__(cls) -> dict:
        return {"version_id_col": cls.version}


# --- People ---
class Group(str, enum.Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class Gender(str, enum.Enum):
    DIVERSE = "DIVERSE"
    FEMALE = "FEMALE"
    MALE = "MALE"


class Person(RecordHeader, Base):
    __tablename__ = "people"
    email: Mapped[str] = mapped_column(String(128), unique=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    group: Mapped[Group] = mapped_column("group_alias", Enum(Group, native_enum=False), default=Group.USER)
    gender: Mapped[Gender] = mapped_column(Enum(Gender, native_enum=False), default=Gender.DIVERSE)
    title: Mapped[str] = mapped_column(String(15), nullable=True)
    surname: Mapped[str] = mapped_column(String(31))
    forename: Mapped[str] = mapped_column(String(31))
    postcode: Mapped[str] = mapped_column(String(15), nullable=True)
    street: Mapped[str] = mapped_column(String(63), nullable=True)
    city: Mapped[str] = mapped_column(String(63), nullable=True)
    country: Mapped[str] = mapped_column(String(63), nullable=True)
    avatar_id: Mapped[int] = mapped_column(ForeignKey("documents.id"), nullable=True)

    access_plans: Mapped[list[AccessPlan]] = relationship(
        back_populates="tenant", cascade="all, delete-orphan", order_by="AccessPlan.id"
    )
    # Authored content outlives its author; the ORM nulls author_id on delete
    recipes: Mapped[list[Recipe]] = relationship(back_populates="author", order_by="Recipe.title")
    victuals: Mapped[list[Victual]] = relationship(back_populates="author", order_by="Victual.alias")


# --- Documents ---
class Document(RecordHeader, Base):
    __tablename__ = "documents"
    hash: Mapped[str] = mapped_column(String(64), unique=True)
    type: Mapped[str] = mapped_column(String(63))
    description: Mapped[str] = mapped_column(String(127), nullable=True)
    content: Mapped[bytes] = mapped_column(LargeBinary)

    def __init__(self, content: bytes, **kw) -> None:
        super().__init__(content=content, hash=sha256_hex(content), **kw)


# --- Access plans & monthly counters ---
class Variant(str, enum.Enum):
    """Quota tiers, ordered; ``limit`` is the monthly cap or None for uncapped."""

    ALPHA = "ALPHA"
    BETA = "BETA"
    GAMMA = "GAMMA"
    DELTA = "DELTA"
    OMEGA = "OMEGA"

    @property
    def limit(self) -> int | None:
        return _VARIANT_LIMITS[self]


_VARIANT_LIMITS: dict[Variant, int | None] = {
    Variant.ALPHA: 100,
    Variant.BETA: 10_000,
    Variant.GAMMA: 1_000_000,
    Variant.DELTA: 100_000_000,
    Variant.OMEGA: None,
}


def access_key_for(tenant_id: int, application: str) -> str:
    return sha256_hex(f"{tenant_id}|{application}")


class AccessPlan(RecordHeader, Base):
    __tablename__ = "access_plans"
    tenant_id: Mapped[int] = mapped_column(ForeignKey("people.id", ondelete="CASCADE"))
    application: Mapped[str] = mapped_column(String(128))
    variant: Mapped[Variant] = mapped_column(Enum(Variant, native_enum=False), default=Variant.ALPHA)
    # Derived from tenant id + application; immutable once created.
    key: Mapped[str] = mapped_column("alias", String(64), unique=True)

    tenant: Mapped[Person] = relationship(back_populates="access_plans")
    counters: Mapped[list[AccessCounter]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by=lambda: [AccessCounter.year, AccessCounter.month],
    )

    __table_args__ = (UniqueConstraint("tenant_id", "application", name="uq_access_plans_tenant_application"),)


class AccessCounter(Base):
    """Usage tally of one plan for one calendar (year, month)."""

    __tablename__ = "access_counters"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("access_plans.id", ondelete="CASCADE"))
    year: Mapped[int] = mapped_column(SmallInteger)
    month: Mapped[int] = mapped_column(SmallInteger)
    amount: Mapped[int] = mapped_column(BigInteger, default=0)

    plan: Mapped[AccessPlan] = relationship(back_populates="counters")

    __table_args__ = (UniqueConstraint("plan_id", "year", "month", name="uq_access_counters_period"),)


# --- Meal types ---
class CourseType(str, enum.Enum):
    APPETIZER = "APPETIZER"
    MAIN_COURSE = "MAIN_COURSE"
    DESSERT = "DESSERT"


class MealType(RecordHeader, Base):
    __tablename__ = "meal_types"
    # Dense 1..N across all rows; kept gap-free by CourseSequencer, not by a constraint.
    course_number: Mapped[int] = mapped_column(Integer, default=1)
    course_type: Mapped[CourseType] = mapped_column(
        Enum(CourseType, native_enum=False), default=CourseType.MAIN_COURSE
    )
    author_id: Mapped[int] = mapped_column(ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    dish_id: Mapped[int] = mapped_column(ForeignKey("dishes.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (Index("ix_meal_types_course_number", "course_number"),)


# --- Victuals ---
class Diet(str, enum.Enum):
    """Ordered from least to most restrictive; a recipe's diet is the least restrictive of its victuals."""

    CARNIVORIAN = "CARNIVORIAN"
    PESCATARIAN = "PESCATARIAN"
    LACTO_OVO_VEGETARIAN = "LACTO_OVO_VEGETARIAN"
    LACTO_VEGETARIAN = "LACTO_VEGETARIAN"
    VEGAN = "VEGAN"

    @property
    def rank(self) -> int:
        return list(Diet).index(self)


class Victual(RecordHeader, Base):
    __tablename__ = "victuals"
    alias: Mapped[str] = mapped_column(String(128), unique=True)
    description: Mapped[str] = mapped_column(String(4094), nullable=True)
    diet: Mapped[Diet] = mapped_column(Enum(Diet, native_enum=False), default=Diet.VEGAN)
    avatar_id: Mapped[int] = mapped_column(ForeignKey("documents.id"), nullable=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("people.id", ondelete="SET NULL"), nullable=True)

    author: Mapped[Person | None] = relationship(back_populates="victuals")


# --- Recipes ---
class Category(str, enum.Enum):
    MAIN_COURSE = "MAIN_COURSE"
    APPETIZER = "APPETIZER"
    SNACK = "SNACK"
    DESSERT = "DESSERT"
    BREAKFAST = "BREAKFAST"
    BUFFET = "BUFFET"
    BARBEQUE = "BARBEQUE"
    ADOLESCENT = "ADOLESCENT"
    INFANT = "INFANT"


class Unit(str, enum.Enum):
    LITRE = "LITRE"
    GRAM = "GRAM"
    TEASPOON = "TEASPOON"
    TABLESPOON = "TABLESPOON"
    PINCH = "PINCH"
    CUP = "CUP"
    CAN = "CAN"
    TUBE = "TUBE"
    BUSHEL = "BUSHEL"
    PIECE = "PIECE"


recipe_illustrations = Table(
    "recipe_illustrations",
    Base.metadata,
    Column("recipe_id", ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True),
    Column("document_id", ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True),
)


class Recipe(RecordHeader, Base):
    __tablename__ = "recipes"
    category: Mapped[Category] = mapped_column(Enum(Category, native_enum=False), default=Category.MAIN_COURSE)
    title: Mapped[str] = mapped_column(String(128), unique=True)
    description: Mapped[str] = mapped_column(String(4094), nullable=True)
    instruction: Mapped[str] = mapped_column(String(4094), nullable=True)
    avatar_id: Mapped[int] = mapped_column(ForeignKey("documents.id"), nullable=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("people.id", ondelete="SET NULL"), nullable=True)

    author: Mapped[Person | None] = relationship(back_populates="recipes")
    ingredients: Mapped[list[Ingredient]] = relationship(
        back_populates="recipe", cascade="all, delete-orphan", order_by="Ingredient.id"
    )
    illustrations: Mapped[list[Document]] = relationship(secondary=recipe_illustrations, order_by="Document.id")

    @property
    def diet(self) -> Diet:
        diets = [i.victual.diet for i in self.ingredients if i.victual is not None]
        return min(diets, key=lambda d: d.rank) if diets else Diet.VEGAN


class Ingredient(RecordHeader, Base):
    __tablename__ = "ingredients"
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    unit: Mapped[Unit] = mapped_column(Enum(Unit, native_enum=False), default=Unit.GRAM)
    victual_id: Mapped[int] = mapped_column(ForeignKey("victuals.id"))
    # Fixed at creation; an ingredient never moves between recipes.
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"))

    victual: Mapped[Victual] = relationship()
    recipe: Mapped[Recipe] = relationship(back_populates="ingredients")


# --- Dishes ---
class Dish(RecordHeader, Base):
    __tablename__ = "dishes"
    dish_type: Mapped[str] = mapped_column(String(128), unique=True, nullable=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
