"""
Expense management routes.
"""
from collections import defaultdict
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Tuple
from tripledger.api.dependencies import get_ledger
from tripledger.api.routes.trips import check_trip_exists
from tripledger.core.errors import SplitValidationError
from tripledger.core.money import from_minor, normalize_currency, to_minor
from tripledger.schemas.expense import (
    CategoryExpenseItem,
    CategorySummaryResponse,
    ExpenseCreate,
    ExpenseResponse,
    ExpenseReverse,
    ExpenseSplitResponse,
    SplitStrategy,
)
from tripledger.schemas.ledger import ExpenseRecord, SplitDraft
from tripledger.services.split_service import equal_split, exact_split, percentage_split
from tripledger.services.trip_ledger import TripLedger

router = APIRouter(prefix="/expenses", tags=["expenses"])


def build_splits(expense_data: ExpenseCreate, currency: str) -> Tuple[int, List[SplitDraft]]:
    """Convert request amounts to minor units and shape them with the chosen strategy."""
    total = to_minor(expense_data.amount, currency, strict=True)

    if expense_data.strategy == SplitStrategy.EQUAL:
        return total, equal_split(total, expense_data.participant_ids)

    if expense_data.strategy == SplitStrategy.EXACT:
        pairs = [(s.member_id, to_minor(s.amount, currency, strict=True)) for s in expense_data.splits]
        return total, exact_split(pairs)

    member_ids = [s.member_id for s in expense_data.splits]
    if len(set(member_ids)) != len(member_ids):
        raise SplitValidationError(["Member list contains duplicates"])
    return total, percentage_split(total, {s.member_id: s.percentage for s in expense_data.splits})


def to_expense_response(expense: ExpenseRecord) -> ExpenseResponse:
    """Build an API response with amounts in major units."""
    return ExpenseResponse(
        id=expense.id,
        trip_id=expense.trip_id,
        title=expense.title,
        amount=from_minor(expense.total_amount, expense.currency),
        currency=expense.currency,
        payer_id=expense.payer_id,
        occurred_at=expense.occurred_at,
        category=expense.category,
        state=expense.state,
        is_settled=expense.is_settled,
        adjusts_expense_id=expense.adjusts_expense_id,
        splits=[
            ExpenseSplitResponse(
                member_id=s.member_id,
                owed_amount=from_minor(s.owed_amount, expense.currency),
                is_paid=s.is_paid,
                paid_at=s.paid_at,
            )
            for s in expense.splits
        ],
    )


@router.post("/{trip_id}", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    trip_id: int,
    expense_data: ExpenseCreate,
    ledger: TripLedger = Depends(get_ledger)
):
    """Record a new expense."""
    trip = check_trip_exists(trip_id, ledger)

    try:
        currency = normalize_currency(expense_data.currency or trip.base_currency)
        total, splits = build_splits(expense_data, currency)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    expense_id = ledger.record_expense(
        trip_id=trip_id,
        title=expense_data.title,
        total_amount=total,
        currency=currency,
        payer_id=expense_data.payer_id,
        splits=splits,
        category=expense_data.category,
        occurred_at=expense_data.occurred_at,
    )
    return to_expense_response(ledger.get_expense(expense_id))


@router.get("/{trip_id}", response_model=List[ExpenseResponse])
async def list_expenses(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """List a trip's expenses in the order they were recorded."""
    return [to_expense_response(e) for e in ledger.list_expenses(trip_id)]


@router.get("/{trip_id}/categories", response_model=CategorySummaryResponse)
async def get_category_summary(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """Spending per category, per currency."""
    summary = ledger.category_summary(trip_id)

    currency_totals = defaultdict(int)
    for item in summary:
        currency_totals[item.currency] += item.total_amount

    categories = []
    for item in summary:
        currency_total = currency_totals[item.currency]
        percentage = (item.total_amount / currency_total * 100) if currency_total else 0.0
        categories.append(CategoryExpenseItem(
            category=item.category,
            currency=item.currency,
            total_amount=from_minor(item.total_amount, item.currency),
            expense_count=item.expense_count,
            percentage=round(percentage, 2),
        ))
    return CategorySummaryResponse(trip_id=trip_id, categories=categories)


@router.get("/item/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """Get a single expense."""
    return to_expense_response(ledger.get_expense(expense_id))


@router.post("/item/{expense_id}/reverse", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def reverse_expense(
    expense_id: int,
    reverse_data: ExpenseReverse,
    ledger: TripLedger = Depends(get_ledger)
):
    """Cancel an expense by recording its negation."""
    adjustment_id = ledger.reverse_expense(expense_id, title=reverse_data.title)
    return to_expense_response(ledger.get_expense(adjustment_id))
