"""
Expense ledger: append-only recording of trip expenses.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from tripledger.core.config import settings
from tripledger.core.errors import (
    AdjustmentError,
    ExpenseNotFoundError,
    MemberReferenceError,
    TripNotFoundError,
)
from tripledger.db.base import utcnow
from tripledger.schemas.ledger import (
    CategoryTotal,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseRecord,
    SplitDraft,
    SplitRecord,
)
from tripledger.services.split_service import absorb_residual, validate_splits
from tripledger.storage.interface import LedgerStore

logger = logging.getLogger(__name__)


class ExpenseLedger:
    """
    Records expenses for a trip and hands back immutable snapshots.

    Recorded expenses are never edited or deleted. A mistake is undone by
    ``reverse`` which appends a negated adjustment entry pointing at the
    original.
    """

    def __init__(self, store: LedgerStore, tolerance: Optional[int] = None):
        self.store = store
        self.tolerance = settings.SPLIT_TOLERANCE_MINOR if tolerance is None else tolerance

    def record(self, draft: ExpenseDraft) -> int:
        """
        Validate and append an expense.

        The payer's own share, if any, is stored as already paid.

        Returns:
            The new expense id

        Raises:
            TripNotFoundError: Unknown trip
            SplitValidationError: Split set does not add up
            MemberReferenceError: Payer or a split member is not on the trip
        """
        if draft.adjusts_expense_id is not None:
            raise AdjustmentError("Adjustments are recorded through reverse()")
        if self.store.get_trip(draft.trip_id) is None:
            raise TripNotFoundError(draft.trip_id)
        member_ids = {m.id for m in self.store.list_members(draft.trip_id)}

        validate_splits(
            draft.total_amount,
            draft.splits,
            member_ids=member_ids,
            tolerance=self.tolerance,
            trip_id=draft.trip_id,
        )
        if draft.payer_id not in member_ids:
            raise MemberReferenceError(draft.trip_id, [draft.payer_id])

        splits = absorb_residual(draft.total_amount, draft.splits)
        now = utcnow()
        rows = [
            SplitRecord(
                member_id=s.member_id,
                owed_amount=s.owed_amount,
                is_paid=s.member_id == draft.payer_id,
                paid_at=now if s.member_id == draft.payer_id else None,
            )
            for s in splits
        ]
        stored = draft.model_copy(update={
            "splits": splits,
            "occurred_at": draft.occurred_at or now,
        })
        expense_id = self.store.insert_expense(stored, rows, is_settled=all(r.is_paid for r in rows))
        logger.info(
            f"Recorded expense {expense_id} on trip {draft.trip_id}: "
            f"{draft.total_amount} {draft.currency} paid by member {draft.payer_id}"
        )
        return expense_id

    def list(self, trip_id: int) -> List[ExpenseRecord]:
        """All expenses of a trip in insertion order."""
        return self.store.fetch_expenses(trip_id)

    def get(self, expense_id: int) -> ExpenseRecord:
        expense = self.store.fetch_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    def find_reversal(self, expense: ExpenseRecord) -> Optional[ExpenseRecord]:
        """The adjustment entry that cancels ``expense``, if one was recorded."""
        for other in self.store.fetch_expenses(expense.trip_id):
            if other.adjusts_expense_id == expense.id:
                return other
        return None

    def reverse(self, expense_id: int, title: Optional[str] = None,
                occurred_at: Optional[datetime] = None) -> int:
        """
        Cancel an expense by appending its negation.

        Payments already made against the original stay in the ledger. The
        matching shares of the reversal are left unpaid as refunds from the
        payer; they show up in the next settlement plan and are cleared with
        ``mark_paid`` or ``settle_transaction`` like any other share.

        Raises:
            ExpenseNotFoundError: Unknown expense
            AdjustmentError: Expense is itself an adjustment or already reversed
        """
        original = self.get(expense_id)
        if original.is_adjustment:
            raise AdjustmentError(f"Expense {expense_id} is an adjustment and cannot be reversed")
        if self.find_reversal(original) is not None:
            raise AdjustmentError(f"Expense {expense_id} has already been reversed")

        draft = ExpenseDraft(
            trip_id=original.trip_id,
            title=title or f"Reversal of {original.title}"[:200],
            total_amount=-original.total_amount,
            currency=original.currency,
            payer_id=original.payer_id,
            occurred_at=occurred_at,
            category=original.category,
            splits=[SplitDraft(member_id=s.member_id, owed_amount=-s.owed_amount) for s in original.splits],
            adjusts_expense_id=original.id,
        )
        validate_splits(draft.total_amount, draft.splits, adjustment=True)

        # Members who already paid their share are owed a refund by the payer;
        # every other share of the reversal is born paid
        now = utcnow()
        refunds = {
            s.member_id for s in original.splits
            if s.is_paid and s.member_id != original.payer_id
        }
        rows = [
            SplitRecord(
                member_id=s.member_id,
                owed_amount=s.owed_amount,
                is_paid=s.member_id not in refunds,
                paid_at=None if s.member_id in refunds else now,
            )
            for s in draft.splits
        ]
        draft = draft.model_copy(update={"occurred_at": occurred_at or now})
        adjustment_id = self.store.insert_expense(draft, rows, is_settled=not refunds)
        logger.info(
            f"Reversed expense {expense_id} with adjustment {adjustment_id}; "
            f"{len(refunds)} refunds outstanding"
        )
        return adjustment_id


def category_summary(expenses: List[ExpenseRecord]) -> List[CategoryTotal]:
    """
    Totals and counts per category and currency.

    A reversal cancels both the amount and the count of its original.
    """
    totals: Dict[Tuple[str, ExpenseCategory], int] = defaultdict(int)
    counts: Dict[Tuple[str, ExpenseCategory], int] = defaultdict(int)
    for expense in expenses:
        key = (expense.currency, expense.category)
        totals[key] += expense.total_amount
        if expense.is_adjustment:
            counts[key] -= 1
        else:
            counts[key] += 1

    order = list(ExpenseCategory)
    return [
        CategoryTotal(category=category, currency=currency,
                      total_amount=totals[(currency, category)], expense_count=counts[(currency, category)])
        for currency, category in sorted(totals, key=lambda k: (k[0], order.index(k[1])))
    ]
