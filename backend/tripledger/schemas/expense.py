"""
Pydantic schemas for Expense entity.
"""
import enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from tripledger.schemas.ledger import ExpenseCategory, ExpenseState


class SplitStrategy(str, enum.Enum):
    """How the total is divided among members."""
    EQUAL = "equal"
    EXACT = "exact"
    PERCENTAGE = "percentage"


class SplitInput(BaseModel):
    """One member's share as supplied by the client."""
    member_id: int
    amount: Optional[Decimal] = None  # exact strategy
    percentage: Optional[Decimal] = None  # percentage strategy


class ExpenseCreate(BaseModel):
    """Schema for expense creation."""
    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = None  # Defaults to the trip's base currency
    payer_id: int
    category: ExpenseCategory = ExpenseCategory.OTHER
    occurred_at: Optional[datetime] = None
    strategy: SplitStrategy = SplitStrategy.EQUAL
    participant_ids: List[int] = []  # equal strategy
    splits: List[SplitInput] = []  # exact and percentage strategies

    @model_validator(mode="after")
    def check_strategy_inputs(self):
        if self.strategy == SplitStrategy.EQUAL:
            if not self.participant_ids:
                raise ValueError("participant_ids is required for an equal split")
        elif self.strategy == SplitStrategy.EXACT:
            if not self.splits or any(s.amount is None for s in self.splits):
                raise ValueError("Every split needs an amount for an exact split")
        elif not self.splits or any(s.percentage is None for s in self.splits):
            raise ValueError("Every split needs a percentage for a percentage split")
        return self


class ExpenseReverse(BaseModel):
    """Schema for reversing an expense."""
    title: Optional[str] = Field(default=None, max_length=200)


class ExpenseSplitResponse(BaseModel):
    """Schema for one member's share of an expense."""
    member_id: int
    owed_amount: Decimal
    is_paid: bool
    paid_at: Optional[datetime] = None


class ExpenseResponse(BaseModel):
    """Schema for expense response."""
    id: int
    trip_id: int
    title: str
    amount: Decimal
    currency: str
    payer_id: int
    occurred_at: datetime
    category: ExpenseCategory
    state: ExpenseState
    is_settled: bool
    adjusts_expense_id: Optional[int] = None
    splits: List[ExpenseSplitResponse] = []


class CategoryExpenseItem(BaseModel):
    """Schema for category expense item in summary."""
    category: ExpenseCategory
    currency: str
    total_amount: Decimal
    expense_count: int
    percentage: float  # Share of the currency's total (0-100)


class CategorySummaryResponse(BaseModel):
    """Schema for category summary response."""
    trip_id: int
    categories: List[CategoryExpenseItem]
