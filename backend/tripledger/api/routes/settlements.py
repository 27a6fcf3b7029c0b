"""
Balance and settlement routes.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from tripledger.api.dependencies import get_ledger
from tripledger.core.money import from_minor, normalize_currency, to_minor
from tripledger.schemas.ledger import SettlementTransaction
from tripledger.schemas.settlement import (
    BalanceResponse,
    PaidShare,
    PaymentRequest,
    PaymentResponse,
    SettlementHistoryItem,
    SettlementPlanResponse,
    Transfer,
    TransferSettleRequest,
    TransferSettleResponse,
)
from tripledger.services.trip_ledger import TripLedger

router = APIRouter(prefix="/settlement", tags=["settlement"])


def member_names(trip_id: int, ledger: TripLedger) -> dict:
    return {m.id: m.display_name for m in ledger.store.list_members(trip_id)}


@router.get("/{trip_id}/balances", response_model=List[BalanceResponse])
async def get_balances(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """Net position of every member, per currency."""
    balances = ledger.get_balances(trip_id)
    names = member_names(trip_id, ledger)
    return [
        BalanceResponse(
            member_id=b.member_id,
            display_name=names.get(b.member_id, ""),
            currency=b.currency,
            total_paid=from_minor(b.total_paid, b.currency),
            total_owed=from_minor(b.total_owed, b.currency),
            settled_out=from_minor(b.settled_out, b.currency),
            settled_in=from_minor(b.settled_in, b.currency),
            net=from_minor(b.net, b.currency),
        )
        for b in balances
    ]


@router.get("/{trip_id}/plan", response_model=SettlementPlanResponse)
async def get_settlement_plan(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """Suggested payments that clear every balance."""
    balances = ledger.get_balances(trip_id)
    transactions = ledger.get_settlement_plan(trip_id)
    names = member_names(trip_id, ledger)

    transfers = [
        Transfer(
            from_member_id=t.from_member_id,
            from_name=names.get(t.from_member_id, ""),
            to_member_id=t.to_member_id,
            to_name=names.get(t.to_member_id, ""),
            amount=from_minor(t.amount, t.currency),
            currency=t.currency,
        )
        for t in transactions
    ]

    # Create summary text
    summary_lines = [f"Participants: {len(names)}", "\nNet balances:"]
    for b in balances:
        summary_lines.append(
            f"  {names.get(b.member_id, b.member_id)}: {from_minor(b.net, b.currency):+} {b.currency}"
        )
    summary_lines.append("\nTransfers:")
    for transfer in transfers:
        summary_lines.append(
            f"  {transfer.from_name} -> {transfer.to_name}: {transfer.amount} {transfer.currency}"
        )
    if not transfers:
        summary_lines.append("  All settled up")

    return SettlementPlanResponse(trip_id=trip_id, transfers=transfers, summary="\n".join(summary_lines))


@router.post("/pay", response_model=PaymentResponse)
async def mark_paid(
    payment: PaymentRequest,
    ledger: TripLedger = Depends(get_ledger)
):
    """Mark one member's share of an expense as paid. Repeating the call is harmless."""
    outcome = ledger.mark_paid(payment.expense_id, payment.member_id)
    expense = ledger.get_expense(payment.expense_id)
    return PaymentResponse(
        outcome=outcome,
        expense_id=payment.expense_id,
        member_id=payment.member_id,
        expense_state=expense.state,
    )


@router.post("/{trip_id}/transactions", response_model=TransferSettleResponse)
async def settle_transfer(
    trip_id: int,
    transfer: TransferSettleRequest,
    ledger: TripLedger = Depends(get_ledger)
):
    """Act on a suggested transfer by paying the shares between the two members."""
    try:
        currency = normalize_currency(transfer.currency)
        amount = to_minor(transfer.amount, currency, strict=True)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    paid = ledger.settle_transaction(trip_id, SettlementTransaction(
        from_member_id=transfer.from_member_id,
        to_member_id=transfer.to_member_id,
        amount=amount,
        currency=currency,
    ))
    return TransferSettleResponse(paid=[PaidShare(expense_id=e, member_id=m) for e, m in paid])


@router.get("/{trip_id}/history", response_model=List[SettlementHistoryItem])
async def get_settlement_history(
    trip_id: int,
    ledger: TripLedger = Depends(get_ledger)
):
    """Completed share payments, newest first."""
    return [
        SettlementHistoryItem(
            expense_id=r.expense_id,
            expense_title=r.expense_title,
            from_member_id=r.from_member_id,
            to_member_id=r.to_member_id,
            amount=from_minor(r.amount, r.currency),
            currency=r.currency,
            paid_at=r.paid_at,
        )
        for r in ledger.list_settlements(trip_id)
    ]
