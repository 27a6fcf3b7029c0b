"""
Expense ledger models. Amounts are stored as integer minor units.
"""
from sqlalchemy import (
    Column, String, BigInteger, Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
)
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel


class Expense(BaseModel):
    """One real-world payment made by a member on behalf of the group."""
    __tablename__ = "expenses"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    total_amount = Column(BigInteger, nullable=False)  # Minor units, negative for adjustments
    currency = Column(String(3), nullable=False)
    payer_id = Column(Integer, ForeignKey("trip_members.id"), nullable=False, index=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    category = Column(String(20), nullable=False, default="other")
    is_settled = Column(Boolean, nullable=False, default=False)
    adjusts_expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=True, unique=True)  # Reversed at most once

    # Relationships
    trip = relationship("Trip", back_populates="expenses")
    payer = relationship("TripMember", foreign_keys=[payer_id])
    splits = relationship("ExpenseSplit", back_populates="expense", cascade="all, delete-orphan",
                          order_by="ExpenseSplit.id")


class ExpenseSplit(BaseModel):
    """One member's share of one expense."""
    __tablename__ = "expense_splits"

    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("trip_members.id"), nullable=False, index=True)
    owed_amount = Column(BigInteger, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    expense = relationship("Expense", back_populates="splits")
    member = relationship("TripMember")

    # One share per member per expense
    __table_args__ = (
        UniqueConstraint('expense_id', 'member_id', name='uq_expense_member'),
    )
