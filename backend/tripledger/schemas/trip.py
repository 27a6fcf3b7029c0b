"""
Pydantic schemas for Trip and TripMember entities.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional
from datetime import date
from tripledger.core.money import normalize_currency


class TripCreate(BaseModel):
    """Schema for trip creation."""
    name: str = Field(..., min_length=1, max_length=200)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    base_currency: Optional[str] = None  # Defaults to DEFAULT_CURRENCY

    @field_validator("base_currency")
    @classmethod
    def check_currency(cls, v):
        return normalize_currency(v) if v is not None else v

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    name: str
    base_currency: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class MemberCreate(BaseModel):
    """Schema for adding a member to a trip."""
    display_name: str = Field(..., min_length=1, max_length=100)


class MemberResponse(BaseModel):
    """Schema for trip member response."""
    id: int
    trip_id: int
    display_name: str

    model_config = ConfigDict(from_attributes=True)
