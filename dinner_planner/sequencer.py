"""Course number sequencing for meal types.

All ``MealType.course_number`` values form one dense sequence 1..N. The
primitives below are bulk conditional UPDATEs; they never open or commit a
transaction themselves and must run inside the caller's transaction
together with the row insert/update/delete they accompany.

Typical use::

    insert, no position     -> next_number()
    insert at n             -> shift_up_from(n), then place at n
    move old -> new (new>old) -> shift_range_down(old + 1, new)
    move old -> new (new<old) -> shift_range_up(new, old - 1)
    delete row at n         -> delete, then shift_down_from(n + 1)
"""

from __future__ import annotations

from sqlalchemy import ColumnElement, func, select, update
from sqlalchemy.orm import Session

from .models import MealType


class CourseSequencer:
    def __init__(self, db: Session) -> None:
        self.db = db

    def next_number(self) -> int:
        """1 + the current maximum course number, or 1 for an empty table."""
        current = self.db.execute(select(func.max(MealType.course_number))).scalar()
        return 1 if current is None else int(current) + 1

    def count(self) -> int:
        return int(self.db.execute(select(func.count(MealType.id))).scalar() or 0)

    def numbers(self) -> list[int]:
        return list(self.db.execute(select(MealType.course_number).order_by(MealType.course_number)).scalars())

    def shift_up_from(self, n: int) -> None:
        """Increment every course number >= n."""
        self._shift(+1, MealType.course_number >= n)

    def shift_down_from(self, n: int) -> None:
        """Decrement every course number >= n."""
        self._shift(-1, MealType.course_number >= n)

    def shift_range_up(self, lo: int, hi: int) -> None:
        """Increment course numbers in [lo, hi]; no-op when lo > hi."""
        if lo > hi:
            return
        self._shift(+1, MealType.course_number.between(lo, hi))

    def shift_range_down(self, lo: int, hi: int) -> None:
        """Decrement course numbers in [lo, hi]; no-op when lo > hi."""
        if lo > hi:
            return
        self._shift(-1, MealType.course_number.between(lo, hi))

    def _shift(self, delta: int, criterion: ColumnElement[bool]) -> None:
        self.db.execute(
            update(MealType)
            .where(criterion)
            .values(course_number=MealType.course_number + delta)
            .execution_options(synchronize_session="fetch")
        )

    def is_dense(self) -> bool:
        return self.numbers() == list(range(1, self.count() + 1))


__all__ = ["CourseSequencer"]
