"""
SQLAlchemy implementation of the ledger store.
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from tripledger.core.errors import (
    AdjustmentError,
    ConcurrencyConflict,
    ExpenseNotFoundError,
    TripNotFoundError,
)
from tripledger.db.base import utcnow
from tripledger.models.expense import Expense, ExpenseSplit
from tripledger.models.trip import Trip, TripMember
from tripledger.schemas.ledger import (
    ExpenseDraft,
    ExpenseRecord,
    MemberRecord,
    SplitRecord,
    TripRecord,
)
from tripledger.storage.interface import LedgerStore

logger = logging.getLogger(__name__)


class SqlLedgerStore(LedgerStore):
    """Ledger store backed by a SQLAlchemy session. Every write commits."""

    def __init__(self, db: Session):
        self.db = db

    def create_trip(self, name: str, base_currency: str, start_date: Optional[date] = None,
                    end_date: Optional[date] = None) -> TripRecord:
        trip = Trip(name=name, base_currency=base_currency, start_date=start_date, end_date=end_date)
        self.db.add(trip)
        self.db.commit()
        self.db.refresh(trip)
        return TripRecord.model_validate(trip)

    def get_trip(self, trip_id: int) -> Optional[TripRecord]:
        trip = self.db.get(Trip, trip_id)
        return TripRecord.model_validate(trip) if trip else None

    def add_member(self, trip_id: int, display_name: str) -> MemberRecord:
        if self.db.get(Trip, trip_id) is None:
            raise TripNotFoundError(trip_id)
        member = TripMember(trip_id=trip_id, display_name=display_name)
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        return MemberRecord.model_validate(member)

    def list_members(self, trip_id: int) -> List[MemberRecord]:
        members = self.db.scalars(
            select(TripMember).where(TripMember.trip_id == trip_id).order_by(TripMember.id)
        ).all()
        return [MemberRecord.model_validate(m) for m in members]

    def insert_expense(self, draft: ExpenseDraft, splits: List[SplitRecord], is_settled: bool) -> int:
        expense = Expense(
            trip_id=draft.trip_id,
            title=draft.title,
            total_amount=draft.total_amount,
            currency=draft.currency,
            payer_id=draft.payer_id,
            occurred_at=draft.occurred_at or utcnow(),
            category=draft.category.value,
            is_settled=is_settled,
            adjusts_expense_id=draft.adjusts_expense_id,
        )
        for split in splits:
            expense.splits.append(ExpenseSplit(
                member_id=split.member_id,
                owed_amount=split.owed_amount,
                is_paid=split.is_paid,
                paid_at=split.paid_at,
            ))
        self.db.add(expense)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if draft.adjusts_expense_id is None:
                raise
            raise AdjustmentError(f"Expense {draft.adjusts_expense_id} has already been reversed")
        return expense.id

    def fetch_expenses(self, trip_id: int) -> List[ExpenseRecord]:
        expenses = self.db.scalars(
            select(Expense)
            .options(selectinload(Expense.splits))
            .where(Expense.trip_id == trip_id)
            .order_by(Expense.id)
        ).all()
        return [ExpenseRecord.model_validate(e) for e in expenses]

    def fetch_expense(self, expense_id: int) -> Optional[ExpenseRecord]:
        expense = self.db.scalars(
            select(Expense).options(selectinload(Expense.splits)).where(Expense.id == expense_id)
        ).first()
        return ExpenseRecord.model_validate(expense) if expense else None

    def ledger_version(self, trip_id: int) -> int:
        expense_count = self.db.scalar(
            select(func.count(Expense.id)).where(Expense.trip_id == trip_id)
        ) or 0
        paid_count = self.db.scalar(
            select(func.count(ExpenseSplit.id))
            .join(Expense, ExpenseSplit.expense_id == Expense.id)
            .where(Expense.trip_id == trip_id, ExpenseSplit.is_paid.is_(True))
        ) or 0
        return expense_count + paid_count

    def _swap_split_paid(self, expense_id: int, member_id: int, expected_paid: bool,
                         new_paid: bool, paid_at: Optional[datetime]) -> None:
        now = utcnow()
        result = self.db.execute(
            update(ExpenseSplit)
            .where(
                ExpenseSplit.expense_id == expense_id,
                ExpenseSplit.member_id == member_id,
                ExpenseSplit.is_paid == expected_paid,
            )
            .values(is_paid=new_paid, paid_at=paid_at if new_paid else None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            exists = self.db.scalar(
                select(ExpenseSplit.id).where(
                    ExpenseSplit.expense_id == expense_id,
                    ExpenseSplit.member_id == member_id,
                )
            )
            if exists is None:
                raise ExpenseNotFoundError(expense_id, member_id)
            raise ConcurrencyConflict(f"Split {expense_id}/{member_id} already changed")

        unpaid = (
            select(ExpenseSplit.id)
            .where(ExpenseSplit.expense_id == expense_id, ExpenseSplit.is_paid.is_(False))
            .exists()
        )
        self.db.execute(
            update(Expense)
            .where(Expense.id == expense_id)
            .values(is_settled=~unpaid, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        # Bulk updates bypass the identity map
        self.db.expire_all()
        logger.debug(f"Split {expense_id}/{member_id} is_paid -> {new_paid}")
