"""Monthly access quota ledger.

One ``AccessCounter`` row per (plan, year, month) is created lazily on the
first admitted request of a month. The plan is looked up by key first;
admission and increment then run under the plan id's lock from ``KeyedLocks``
and inside a dedicated transaction that is committed
before the lock is released. The increment itself is issued as
``amount = amount + 1`` so a second process sharing the database cannot
lose an update either; a concurrent first-of-month insert from another
process trips the unique (plan, year, month) index and surfaces as 409.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .concurrency import KeyedLocks
from .db import get_new_session
from .errors import ConflictError, QuotaExceededError
from .models import AccessCounter, AccessPlan

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Usage:
    plan_id: int
    year: int
    month: int
    amount: int
    limit: int | None


class QuotaLedger:
    def __init__(
        self,
        locks: KeyedLocks,
        session_factory: Callable[[], Session] = get_new_session,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.locks = locks
        self.session_factory = session_factory
        self.clock = clock

    def admit(self, key: str | None, now: datetime | None = None) -> Usage:
        """Charge one request against the plan owning ``key``.

        Raises QuotaExceededError when the key is missing, unknown, or the
        plan has used up its monthly cap; ConflictError when the counter
        commit fails. Nothing is retried.
        """
        if not key:
            log.warning("Quota rejected: missing access key")
            raise QuotaExceededError()
        # Keys are unique and never change, so the plan is resolved before
        # locking; unknown keys never reach the lock registry.
        plan_id = self._resolve(key)
        if plan_id is None:
            log.warning("Quota rejected: unknown access key")
            raise QuotaExceededError()
        now = now or self.clock()
        year, month = now.year, now.month
        with self.locks.hold(plan_id):
            db = self.session_factory()
            try:
                plan = db.get(AccessPlan, plan_id)
                if plan is None:
                    log.warning("Quota rejected: plan_id=%s vanished", plan_id)
                    raise QuotaExceededError()
                counter = (
                    db.execute(
                        select(AccessCounter).where(
                            AccessCounter.plan_id == plan.id,
                            AccessCounter.year == year,
                            AccessCounter.month == month,
                        )
                    )
                    .scalars()
                    .first()
                )
                amount = counter.amount if counter is not None else 0
                limit = plan.variant.limit
                if limit is not None and amount >= limit:
                    log.warning(
                        "Quota rejected: plan_id=%s exhausted %s/%s for %04d-%02d", plan.id, amount, limit, year, month
                    )
                    raise QuotaExceededError()

                try:
                    if counter is None:
                        db.add(AccessCounter(plan_id=plan.id, year=year, month=month, amount=1))
                    else:
                        db.execute(
                            update(AccessCounter)
                            .where(AccessCounter.id == counter.id)
                            .values(amount=AccessCounter.amount + 1)
                            .execution_options(synchronize_session=False)
                        )
                    db.commit()
                except SQLAlchemyError as e:
                    log.warning("Counter commit failed plan_id=%s period=%04d-%02d: %s", plan.id, year, month, e)
                    raise ConflictError("counter_conflict") from e
                return Usage(plan_id=plan.id, year=year, month=month, amount=amount + 1, limit=limit)
            finally:
                # rollback is a no-op after a successful commit
                db.rollback()
                db.close()

    def _resolve(self, key: str) -> int | None:
        db = self.session_factory()
        try:
            return db.execute(select(AccessPlan.id).where(AccessPlan.key == key)).scalar()
        finally:
            db.close()

    def usage(self, plan_id: int, year: int, month: int) -> int:
        db = self.session_factory()
        try:
            amount = db.execute(
                select(AccessCounter.amount).where(
                    AccessCounter.plan_id == plan_id,
                    AccessCounter.year == year,
                    AccessCounter.month == month,
                )
            ).scalar()
            return int(amount or 0)
        finally:
            db.close()


__all__ = ["QuotaLedger", "Usage"]
