"""
Pydantic schemas for balances and settlement.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from tripledger.schemas.ledger import ExpenseState, PaymentOutcome


class BalanceResponse(BaseModel):
    """A member's position in one currency."""
    member_id: int
    display_name: str
    currency: str
    total_paid: Decimal
    total_owed: Decimal
    settled_out: Decimal
    settled_in: Decimal
    net: Decimal  # Positive = should receive, negative = should pay


class Transfer(BaseModel):
    """Schema for a single transfer in settlement."""
    from_member_id: int
    from_name: str
    to_member_id: int
    to_name: str
    amount: Decimal
    currency: str


class SettlementPlanResponse(BaseModel):
    """Schema for a suggested settlement plan."""
    trip_id: int
    transfers: List[Transfer]
    summary: str


class PaymentRequest(BaseModel):
    """Schema for marking one share as paid."""
    expense_id: int
    member_id: int


class PaymentResponse(BaseModel):
    outcome: PaymentOutcome
    expense_id: int
    member_id: int
    expense_state: ExpenseState


class TransferSettleRequest(BaseModel):
    """Schema for acting on a suggested transfer."""
    from_member_id: int
    to_member_id: int
    amount: Decimal
    currency: str


class PaidShare(BaseModel):
    expense_id: int
    member_id: int


class TransferSettleResponse(BaseModel):
    paid: List[PaidShare]


class SettlementHistoryItem(BaseModel):
    """Schema for a completed share payment."""
    expense_id: int
    expense_title: str
    from_member_id: int
    to_member_id: int
    amount: Decimal
    currency: str
    paid_at: Optional[datetime] = None
