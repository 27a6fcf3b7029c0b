"""
Abstract persistence contract required by the ledger.

The ledger never talks to a database directly. Anything that can
append expenses, read consistent snapshots and flip a split's paid flag
atomically can sit behind this interface: SQLAlchemy in production, a
lock-protected dict in tests.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from tripledger.core.errors import ConcurrencyConflict
from tripledger.schemas.ledger import (
    ExpenseDraft,
    ExpenseRecord,
    MemberRecord,
    SplitRecord,
    TripRecord,
)


class LedgerStore(ABC):
    """Key-indexed record store for trips, members and expenses."""

    # -- membership -------------------------------------------------------

    @abstractmethod
    def create_trip(
        self,
        name: str,
        base_currency: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> TripRecord:
        pass

    @abstractmethod
    def get_trip(self, trip_id: int) -> Optional[TripRecord]:
        pass

    @abstractmethod
    def add_member(self, trip_id: int, display_name: str) -> MemberRecord:
        pass

    @abstractmethod
    def list_members(self, trip_id: int) -> List[MemberRecord]:
        """Members of a trip in joining order."""
        pass

    # -- expenses ---------------------------------------------------------

    @abstractmethod
    def insert_expense(
        self,
        draft: ExpenseDraft,
        splits: List[SplitRecord],
        is_settled: bool,
    ) -> int:
        """
        Append a validated expense and return its newly assigned id.

        Args:
            draft: Validated expense with ``occurred_at`` resolved
            splits: Final split rows, including any pre-paid shares
            is_settled: Whether every split is already paid

        Returns:
            A unique expense id

        Raises:
            AdjustmentError: ``draft.adjusts_expense_id`` is already referenced
                by another expense; the check and the insert are atomic
        """
        pass

    @abstractmethod
    def fetch_expenses(self, trip_id: int) -> List[ExpenseRecord]:
        """Consistent snapshot of a trip's expenses in insertion order."""
        pass

    @abstractmethod
    def fetch_expense(self, expense_id: int) -> Optional[ExpenseRecord]:
        pass

    @abstractmethod
    def ledger_version(self, trip_id: int) -> int:
        """
        Counter that changes on every insert and every successful payment.

        Used as the memoization key for derived balances.
        """
        pass

    # -- payments ---------------------------------------------------------

    def compare_and_set_split_paid(
        self,
        expense_id: int,
        member_id: int,
        expected_paid: bool = False,
        new_paid: bool = True,
        paid_at: Optional[datetime] = None,
    ) -> bool:
        """
        Atomically flip a split's paid flag.

        Returns False when the flag no longer holds ``expected_paid``,
        meaning another caller already applied the change. When the swap
        leaves no unpaid split the expense is marked settled in the same
        atomic step.

        Raises:
            ExpenseNotFoundError: If the expense or split doesn't exist
        """
        try:
            self._swap_split_paid(expense_id, member_id, expected_paid, new_paid, paid_at)
        except ConcurrencyConflict:
            return False
        return True

    @abstractmethod
    def _swap_split_paid(
        self,
        expense_id: int,
        member_id: int,
        expected_paid: bool,
        new_paid: bool,
        paid_at: Optional[datetime],
    ) -> None:
        """Perform the swap or raise ConcurrencyConflict."""
        pass
