"""Meal type persistence with course number maintenance.

Each structural change (insert, move, delete) runs the row mutation and the
accompanying ``CourseSequencer`` shifts in one transaction; any failure
rolls back the whole unit so no partial renumbering is ever committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .concurrency import KeyedLocks, check_version
from .errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from .models import CourseType, Dish, MealType, Person
from .pagination import PageRequest, page_select
from .sequencer import CourseSequencer

log = logging.getLogger(__name__)

_LOCK_KEY = "meal_types"


@dataclass
class MealTypeTemplate:
    id: int = 0
    version: int | None = None
    course_number: int | None = None
    course_type: CourseType | None = None
    dish_id: int | None = None


class MealTypeService:
    def __init__(self, db: Session, locks: KeyedLocks | None = None, isolation_level: str | None = None) -> None:
        self.db = db
        # Serializes structural changes within this process; across processes
        # the transaction isolation level carries the guarantee.
        self.locks = locks or KeyedLocks("global")
        self.isolation_level = isolation_level

    # --- reads ---
    def query(self, course_type: CourseType | None = None, page: PageRequest | None = None) -> list[MealType]:
        stmt = select(MealType).order_by(MealType.course_number, MealType.id)
        if course_type is not None:
            stmt = stmt.where(MealType.course_type == course_type)
        if page is not None:
            stmt = page_select(stmt, page)
        return list(self.db.execute(stmt).scalars())

    def get(self, meal_type_id: int) -> MealType:
        mt = self.db.get(MealType, meal_type_id)
        if mt is None:
            raise NotFoundError("meal_type_not_found")
        return mt

    # --- writes ---
    def save(self, requester_id: int, template: MealTypeTemplate) -> MealType:
        """Insert (template id 0) or update a meal type, renumbering siblings."""
        with self.locks.hold(_LOCK_KEY):
            return self._in_transaction(lambda seq: self._save(seq, requester_id, template))

    def delete(self, requester_id: int, meal_type_id: int) -> int:
        with self.locks.hold(_LOCK_KEY):
            return self._in_transaction(lambda seq: self._delete(seq, requester_id, meal_type_id))

    def _in_transaction(self, work):
        db = self.db
        try:
            if self.isolation_level and not db.in_transaction():
                db.connection(execution_options={"isolation_level": self.isolation_level})
            result = work(CourseSequencer(db))
            db.commit()
            return result
        except (StaleDataError, IntegrityError, OperationalError) as e:
            db.rollback()
            log.warning("Meal type change conflicted: %s", e)
            raise ConflictError("meal_type_conflict") from e
        except Exception:
            db.rollback()
            raise

    def _requester(self, requester_id: int) -> Person:
        requester = self.db.get(Person, requester_id)
        if requester is None:
            raise ForbiddenError()
        return requester

    def _dish_id(self, template: MealTypeTemplate) -> int | None:
        # Sent on every save; a missing reference clears the dish
        if template.dish_id is None:
            return None
        if self.db.get(Dish, template.dish_id) is None:
            raise NotFoundError("dish_not_found")
        return template.dish_id

    def _save(self, seq: CourseSequencer, requester_id: int, template: MealTypeTemplate) -> MealType:
        requester = self._requester(requester_id)
        if not template.id:
            return self._insert(seq, requester, template)

        entity = self.get(template.id)
        check_version(entity.version, template.version, resource="meal_type")
        if template.course_type is not None:
            entity.course_type = template.course_type
        entity.dish_id = self._dish_id(template)

        old_no = entity.course_number
        new_no = old_no if template.course_number is None else template.course_number
        if new_no != old_no:
            if new_no < 1 or new_no > seq.count():
                raise BadRequestError("course_number_out_of_range", max=seq.count())
            if new_no > old_no:
                seq.shift_range_down(old_no + 1, new_no)
            else:
                seq.shift_range_up(new_no, old_no - 1)
            entity.course_number = new_no
        self.db.flush()
        return entity

    def _insert(self, seq: CourseSequencer, requester: Person, template: MealTypeTemplate) -> MealType:
        dish_id = self._dish_id(template)
        next_no = seq.next_number()
        requested = template.course_number
        if requested is None:
            number = next_no
        else:
            if requested < 1 or requested > next_no:
                raise BadRequestError("course_number_out_of_range", max=next_no)
            seq.shift_up_from(requested)
            number = requested
        entity = MealType(
            course_number=number,
            course_type=template.course_type or CourseType.MAIN_COURSE,
            author_id=requester.id,
            dish_id=dish_id,
        )
        self.db.add(entity)
        self.db.flush()
        return entity

    def _delete(self, seq: CourseSequencer, requester_id: int, meal_type_id: int) -> int:
        self._requester(requester_id)
        entity = self.get(meal_type_id)
        removed_no = entity.course_number
        self.db.delete(entity)
        self.db.flush()
        seq.shift_down_from(removed_no + 1)
        return meal_type_id


__all__ = ["MealTypeService", "MealTypeTemplate"]
