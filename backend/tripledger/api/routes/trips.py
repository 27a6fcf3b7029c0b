"""
Trip and membership routes.
"""
import logging
from fastapi import APIRouter, Depends, status
from typing import List
from tripledger.api.dependencies import get_ledger
from tripledger.core.config import settings
from tripledger.core.errors import TripNotFoundError
from tripledger.schemas.trip import TripCreate, TripResponse, MemberCreate, MemberResponse
from tripledger.services.trip_ledger import TripLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["trips"])


def check_trip_exists(trip_id: int, ledger: TripLedger):
    """Return the trip or raise TripNotFoundError."""
    trip = ledger.store.get_trip(trip_id)
    if trip is None:
        raise TripNotFoundError(trip_id)
    return trip


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    ledger: TripLedger = Depends(get_ledger)
):
    """Create a new trip."""
    trip = ledger.store.create_trip(
        name=trip_data.name,
        base_currency=trip_data.base_currency or settings.DEFAULT_CURRENCY,
        start_date=trip_data.start_date,
        end_date=trip_data.end_date,
    )
    logger.info(f"Created trip {trip.id} ({trip.name}, {trip.base_currency})")
    return trip


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """Get trip details."""
    return check_trip_exists(trip_id, ledger)


@router.post("/{trip_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    trip_id: int,
    member_data: MemberCreate,
    ledger: TripLedger = Depends(get_ledger)
):
    """Add a member to a trip."""
    return ledger.store.add_member(trip_id, member_data.display_name)


@router.get("/{trip_id}/members", response_model=List[MemberResponse])
async def list_members(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """List a trip's members in joining order."""
    check_trip_exists(trip_id, ledger)
    return ledger.store.list_members(trip_id)
