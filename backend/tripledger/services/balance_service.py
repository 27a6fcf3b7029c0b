"""
Balance calculation over a trip's ledger.
"""
import logging
import threading
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Tuple

from tripledger.core.errors import TripNotFoundError
from tripledger.schemas.ledger import Balance, ExpenseRecord, MemberRecord, SettlementRecord
from tripledger.storage.interface import LedgerStore

logger = logging.getLogger(__name__)


def settled_flows(expenses: Iterable[ExpenseRecord]) -> Iterator[SettlementRecord]:
    """
    Yield every paid share that moved money between two members.

    A paid share of an ordinary expense is a payment from the member to
    the payer. On a reversal, a share is a refund from the payer back to
    the member, and it only moves money when the member had paid the
    matching share of the reversed expense.
    """
    expenses = list(expenses)
    by_id = {e.id: e for e in expenses}
    for expense in expenses:
        original = by_id.get(expense.adjusts_expense_id) if expense.is_adjustment else None
        for split in expense.splits:
            if not split.is_paid or split.member_id == expense.payer_id:
                continue
            if not expense.is_adjustment:
                from_id, to_id, amount = split.member_id, expense.payer_id, split.owed_amount
            else:
                counterpart = original.split_for(split.member_id) if original else None
                if counterpart is None or not counterpart.is_paid:
                    continue
                from_id, to_id, amount = expense.payer_id, split.member_id, -split.owed_amount
            yield SettlementRecord(
                expense_id=expense.id,
                expense_title=expense.title,
                from_member_id=from_id,
                to_member_id=to_id,
                amount=amount,
                currency=expense.currency,
                paid_at=split.paid_at,
            )


def compute_balances(
    expenses: Iterable[ExpenseRecord],
    members: Iterable[MemberRecord],
    default_currency: str,
) -> List[Balance]:
    """
    Derive every member's position from a ledger snapshot.

    Balances are kept per currency. Every member gets a row in every
    currency the trip has used (or in ``default_currency`` when the trip
    has no expenses yet). Rows are ordered by currency, then by joining
    order.
    """
    expenses = list(expenses)
    member_order = [m.id for m in members]
    paid: Dict[Tuple[str, int], int] = defaultdict(int)
    owed: Dict[Tuple[str, int], int] = defaultdict(int)
    settled_out: Dict[Tuple[str, int], int] = defaultdict(int)
    settled_in: Dict[Tuple[str, int], int] = defaultdict(int)
    currencies = set()

    for expense in expenses:
        currency = expense.currency
        currencies.add(currency)
        paid[(currency, expense.payer_id)] += expense.total_amount
        if expense.payer_id not in member_order:
            member_order.append(expense.payer_id)
        for split in expense.splits:
            owed[(currency, split.member_id)] += split.owed_amount
            if split.member_id not in member_order:
                member_order.append(split.member_id)

    for flow in settled_flows(expenses):
        settled_out[(flow.currency, flow.from_member_id)] += flow.amount
        settled_in[(flow.currency, flow.to_member_id)] += flow.amount

    if not currencies:
        currencies.add(default_currency)

    balances = []
    for currency in sorted(currencies):
        for member_id in member_order:
            key = (currency, member_id)
            balances.append(Balance(
                member_id=member_id,
                currency=currency,
                total_paid=paid[key],
                total_owed=owed[key],
                settled_out=settled_out[key],
                settled_in=settled_in[key],
                net=paid[key] - owed[key] + settled_out[key] - settled_in[key],
            ))
    return balances


class BalanceCalculator:
    """
    Computes balances for a trip, memoized on the store's ledger version.

    A cached result is reused until an expense is inserted or a share is
    paid on that trip.
    """

    def __init__(self, store: LedgerStore):
        self.store = store
        self._cache: Dict[int, Tuple[int, List[Balance]]] = {}
        self._lock = threading.Lock()

    def compute_balances(self, trip_id: int) -> List[Balance]:
        trip = self.store.get_trip(trip_id)
        if trip is None:
            raise TripNotFoundError(trip_id)

        version = self.store.ledger_version(trip_id)
        with self._lock:
            cached = self._cache.get(trip_id)
        if cached is not None and cached[0] == version:
            logger.debug(f"Balance cache hit for trip {trip_id} at version {version}")
            return list(cached[1])

        expenses = self.store.fetch_expenses(trip_id)
        members = self.store.list_members(trip_id)
        balances = compute_balances(expenses, members, trip.base_currency)
        logger.debug(f"Computed {len(balances)} balances for trip {trip_id} at version {version}")

        with self._lock:
            self._cache[trip_id] = (version, balances)
        return list(balances)

    def invalidate(self, trip_id: int = None) -> None:
        with self._lock:
            if trip_id is None:
                self._cache.clear()
            else:
                self._cache.pop(trip_id, None)
