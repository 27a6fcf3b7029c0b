"""
Trip ledger facade used by the API and other callers.
"""
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from tripledger.core.errors import TripNotFoundError
from tripledger.schemas.ledger import (
    Balance,
    CategoryTotal,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseRecord,
    PaymentOutcome,
    SettlementRecord,
    SettlementTransaction,
    SplitDraft,
)
from tripledger.services.balance_service import BalanceCalculator
from tripledger.services.expense_service import ExpenseLedger, category_summary
from tripledger.services.settlement_service import (
    ReminderListener,
    SettlementRecorder,
    list_settlements,
    plan_settlement,
)
from tripledger.storage.interface import LedgerStore


class TripLedger:
    """Wires the ledger, balance calculator and settlement recorder to one store."""

    def __init__(self, store: LedgerStore, tolerance: Optional[int] = None,
                 listeners: Optional[List[ReminderListener]] = None):
        self.store = store
        self.expenses = ExpenseLedger(store, tolerance=tolerance)
        self.balances = BalanceCalculator(store)
        self.recorder = SettlementRecorder(store, listeners=listeners)

    def on_unsettled(self, listener: ReminderListener) -> ReminderListener:
        """Register a reminder listener. Usable as a decorator."""
        self.recorder.add_listener(listener)
        return listener

    def record_expense(
        self,
        trip_id: int,
        title: str,
        total_amount: int,
        currency: str,
        payer_id: int,
        splits: Sequence[SplitDraft],
        category: ExpenseCategory = ExpenseCategory.OTHER,
        occurred_at: Optional[datetime] = None,
    ) -> int:
        draft = ExpenseDraft(
            trip_id=trip_id,
            title=title,
            total_amount=total_amount,
            currency=currency,
            payer_id=payer_id,
            splits=list(splits),
            category=category,
            occurred_at=occurred_at,
        )
        return self.expenses.record(draft)

    def reverse_expense(self, expense_id: int, title: Optional[str] = None) -> int:
        return self.expenses.reverse(expense_id, title=title)

    def list_expenses(self, trip_id: int) -> List[ExpenseRecord]:
        self._require_trip(trip_id)
        return self.expenses.list(trip_id)

    def get_expense(self, expense_id: int) -> ExpenseRecord:
        return self.expenses.get(expense_id)

    def get_balances(self, trip_id: int) -> List[Balance]:
        return self.balances.compute_balances(trip_id)

    def get_settlement_plan(self, trip_id: int) -> List[SettlementTransaction]:
        return plan_settlement(self.get_balances(trip_id))

    def mark_paid(self, expense_id: int, member_id: int) -> PaymentOutcome:
        return self.recorder.apply_payment(expense_id, member_id)

    def settle_transaction(self, trip_id: int, transaction: SettlementTransaction) -> List[Tuple[int, int]]:
        self._require_trip(trip_id)
        return self.recorder.settle_transaction(trip_id, transaction)

    def list_settlements(self, trip_id: int) -> List[SettlementRecord]:
        return list_settlements(self.list_expenses(trip_id))

    def category_summary(self, trip_id: int) -> List[CategoryTotal]:
        return category_summary(self.list_expenses(trip_id))

    def _require_trip(self, trip_id: int) -> None:
        if self.store.get_trip(trip_id) is None:
            raise TripNotFoundError(trip_id)
