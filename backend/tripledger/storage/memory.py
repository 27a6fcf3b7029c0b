"""
In-process ledger store.

Keeps everything in dicts guarded by a single lock. Suitable for tests
and for embedding the ledger without a database.
"""
import itertools
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from tripledger.core.errors import (
    AdjustmentError,
    ConcurrencyConflict,
    ExpenseNotFoundError,
    TripNotFoundError,
)
from tripledger.schemas.ledger import (
    ExpenseDraft,
    ExpenseRecord,
    MemberRecord,
    SplitRecord,
    TripRecord,
)
from tripledger.storage.interface import LedgerStore


class InMemoryLedgerStore(LedgerStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._trips: Dict[int, TripRecord] = {}
        self._members: Dict[int, List[MemberRecord]] = defaultdict(list)
        self._expenses: Dict[int, ExpenseRecord] = {}
        self._trip_expenses: Dict[int, List[int]] = defaultdict(list)
        self._versions: Dict[int, int] = defaultdict(int)

    def create_trip(self, name, base_currency, start_date: Optional[date] = None,
                    end_date: Optional[date] = None) -> TripRecord:
        with self._lock:
            trip = TripRecord(
                id=next(self._ids),
                name=name,
                base_currency=base_currency,
                start_date=start_date,
                end_date=end_date,
            )
            self._trips[trip.id] = trip
            return trip

    def get_trip(self, trip_id: int) -> Optional[TripRecord]:
        return self._trips.get(trip_id)

    def add_member(self, trip_id: int, display_name: str) -> MemberRecord:
        with self._lock:
            if trip_id not in self._trips:
                raise TripNotFoundError(trip_id)
            member = MemberRecord(id=next(self._ids), trip_id=trip_id, display_name=display_name)
            self._members[trip_id].append(member)
            return member

    def list_members(self, trip_id: int) -> List[MemberRecord]:
        with self._lock:
            return list(self._members.get(trip_id, []))

    def insert_expense(self, draft: ExpenseDraft, splits: List[SplitRecord], is_settled: bool) -> int:
        with self._lock:
            if draft.adjusts_expense_id is not None and any(
                e.adjusts_expense_id == draft.adjusts_expense_id for e in self._expenses.values()
            ):
                raise AdjustmentError(f"Expense {draft.adjusts_expense_id} has already been reversed")
            expense_id = next(self._ids)
            self._expenses[expense_id] = ExpenseRecord(
                id=expense_id,
                trip_id=draft.trip_id,
                title=draft.title,
                total_amount=draft.total_amount,
                currency=draft.currency,
                payer_id=draft.payer_id,
                occurred_at=draft.occurred_at or datetime.now(timezone.utc),
                category=draft.category,
                splits=list(splits),
                is_settled=is_settled,
                adjusts_expense_id=draft.adjusts_expense_id,
            )
            self._trip_expenses[draft.trip_id].append(expense_id)
            self._versions[draft.trip_id] += 1
            return expense_id

    def fetch_expenses(self, trip_id: int) -> List[ExpenseRecord]:
        with self._lock:
            # Records are frozen; payments replace them
            return [self._expenses[eid] for eid in self._trip_expenses.get(trip_id, [])]

    def fetch_expense(self, expense_id: int) -> Optional[ExpenseRecord]:
        with self._lock:
            return self._expenses.get(expense_id)

    def ledger_version(self, trip_id: int) -> int:
        with self._lock:
            return self._versions[trip_id]

    def _swap_split_paid(self, expense_id, member_id, expected_paid, new_paid, paid_at) -> None:
        with self._lock:
            expense = self._expenses.get(expense_id)
            if expense is None:
                raise ExpenseNotFoundError(expense_id)
            index = next(
                (i for i, s in enumerate(expense.splits) if s.member_id == member_id), None
            )
            if index is None:
                raise ExpenseNotFoundError(expense_id, member_id)
            split = expense.splits[index]
            if split.is_paid != expected_paid:
                raise ConcurrencyConflict(
                    f"Split {expense_id}/{member_id} is_paid={split.is_paid}, expected {expected_paid}"
                )

            splits = list(expense.splits)
            splits[index] = split.model_copy(
                update={"is_paid": new_paid, "paid_at": paid_at if new_paid else None}
            )
            settled = all(s.is_paid for s in splits)
            self._expenses[expense_id] = expense.model_copy(
                update={"splits": splits, "is_settled": settled}
            )
            self._versions[expense.trip_id] += 1
