"""
Typed ledger entities shared by storage, services and the API layer.

All amounts are integer minor units of ``currency``.
"""
import enum
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from tripledger.core.money import normalize_currency


class ExpenseCategory(str, enum.Enum):
    """Expense categories offered when logging a trip expense."""
    HOTEL = "hotel"
    FLIGHT = "flight"
    FOOD = "food"
    TRANSPORT = "transport"
    ACTIVITY = "activity"
    SHOPPING = "shopping"
    OTHER = "other"


class ExpenseState(str, enum.Enum):
    """Lifecycle of a recorded expense. Drafts never reach the ledger."""
    RECORDED = "recorded"
    PARTIALLY_SETTLED = "partially_settled"
    SETTLED = "settled"


class PaymentOutcome(str, enum.Enum):
    """Result of marking a split paid."""
    OK = "ok"
    ALREADY_PAID = "already_paid"


class TripRecord(BaseModel):
    id: int
    name: str
    base_currency: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    model_config = {"from_attributes": True, "frozen": True}


class MemberRecord(BaseModel):
    """A trip member as the ledger sees it."""
    id: int
    trip_id: int
    display_name: str

    model_config = {"from_attributes": True, "frozen": True}


class SplitDraft(BaseModel):
    """A member's proposed share of an expense."""
    member_id: int
    owed_amount: int


class SplitRecord(BaseModel):
    member_id: int
    owed_amount: int
    is_paid: bool = False
    paid_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "frozen": True}


class ExpenseDraft(BaseModel):
    """An expense being composed, not yet validated."""
    trip_id: int
    title: str = Field(..., min_length=1, max_length=200)
    total_amount: int
    currency: str
    payer_id: int
    occurred_at: Optional[datetime] = None
    category: ExpenseCategory = ExpenseCategory.OTHER
    splits: List[SplitDraft]
    adjusts_expense_id: Optional[int] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v: str) -> str:
        return normalize_currency(v)


class ExpenseRecord(BaseModel):
    """An expense accepted into the ledger."""
    id: int
    trip_id: int
    title: str
    total_amount: int
    currency: str
    payer_id: int
    occurred_at: datetime
    category: ExpenseCategory
    splits: List[SplitRecord]
    is_settled: bool = False
    adjusts_expense_id: Optional[int] = None

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def is_adjustment(self) -> bool:
        return self.adjusts_expense_id is not None

    @property
    def state(self) -> ExpenseState:
        paid = sum(1 for s in self.splits if s.is_paid)
        if self.is_settled or paid == len(self.splits):
            return ExpenseState.SETTLED
        # The payer's own share is paid on record, so count only other members
        others_paid = sum(1 for s in self.splits if s.is_paid and s.member_id != self.payer_id)
        if others_paid:
            return ExpenseState.PARTIALLY_SETTLED
        return ExpenseState.RECORDED

    def split_for(self, member_id: int) -> Optional[SplitRecord]:
        for split in self.splits:
            if split.member_id == member_id:
                return split
        return None

    def unpaid_member_ids(self) -> List[int]:
        return [s.member_id for s in self.splits if not s.is_paid]


class Balance(BaseModel):
    """
    A member's position in one currency.

    ``total_paid``/``total_owed`` are gross expense figures;
    ``settled_out``/``settled_in`` are split payments made to and
    received from other members. Positive ``net`` means the member is owed.
    """
    member_id: int
    currency: str
    total_paid: int = 0
    total_owed: int = 0
    settled_out: int = 0
    settled_in: int = 0
    net: int = 0

    model_config = {"frozen": True}


class SettlementTransaction(BaseModel):
    """A suggested payment from a debtor to a creditor."""
    from_member_id: int
    to_member_id: int
    amount: int
    currency: str

    model_config = {"frozen": True}


class SettlementRecord(BaseModel):
    """A completed split payment, for the settlement history."""
    expense_id: int
    expense_title: str
    from_member_id: int
    to_member_id: int
    amount: int
    currency: str
    paid_at: Optional[datetime] = None


class PaymentReminder(BaseModel):
    """Emitted when a payment leaves its expense with outstanding shares."""
    trip_id: int
    expense_id: int
    paid_member_id: int
    payer_id: int
    outstanding_member_ids: List[int]


class CategoryTotal(BaseModel):
    category: ExpenseCategory
    currency: str
    total_amount: int
    expense_count: int
