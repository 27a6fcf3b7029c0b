"""
Ledger error taxonomy.

Every failure the ledger reports derives from ``LedgerError``. An
already-paid split is not an error; see ``PaymentOutcome``.
"""
from typing import Iterable, List


class LedgerError(Exception):
    """Base class for ledger failures."""
    pass


class SplitValidationError(LedgerError):
    """Proposed split set is malformed (empty, negative, wrong sum)."""

    def __init__(self, issues: Iterable[str]):
        self.issues: List[str] = list(issues)
        super().__init__("; ".join(self.issues) or "Invalid split")


class MemberReferenceError(LedgerError):
    """An expense references members that do not belong to the trip."""

    def __init__(self, trip_id: int, member_ids: Iterable[int]):
        self.trip_id = trip_id
        self.member_ids = sorted(set(member_ids))
        super().__init__(
            f"Members {self.member_ids} are not part of trip {trip_id}"
        )


class ExpenseNotFoundError(LedgerError):
    """Requested expense (or split within it) does not exist."""

    def __init__(self, expense_id: int, member_id: int = None):
        self.expense_id = expense_id
        self.member_id = member_id
        if member_id is None:
            message = f"Expense {expense_id} not found"
        else:
            message = f"No split for member {member_id} on expense {expense_id}"
        super().__init__(message)


class TripNotFoundError(LedgerError):
    """Requested trip does not exist."""

    def __init__(self, trip_id: int):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} not found")


class AdjustmentError(LedgerError):
    """Correction rejected: already reversed, reversing an adjustment, or paying a reversed expense."""
    pass


class ConcurrencyConflict(LedgerError):
    """Compare-and-set lost a race. Raised inside storage only."""
    pass
