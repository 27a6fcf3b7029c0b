"""
Trip and membership models.
"""
from sqlalchemy import Column, String, Date, ForeignKey, Integer
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel


class Trip(BaseModel):
    """Trip model representing a group travel event."""
    __tablename__ = "trips"

    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=True, index=True)
    end_date = Column(Date, nullable=True, index=True)
    base_currency = Column(String(3), nullable=False, default="INR")

    # Relationships
    members = relationship("TripMember", back_populates="trip", cascade="all, delete-orphan",
                           order_by="TripMember.id")
    expenses = relationship("Expense", back_populates="trip", cascade="all, delete-orphan",
                            order_by="Expense.id")


class TripMember(BaseModel):
    """A party on a trip who can owe or be owed money."""
    __tablename__ = "trip_members"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    display_name = Column(String(100), nullable=False)

    # Relationships
    trip = relationship("Trip", back_populates="members")
