"""
Settlement service: debt simplification and payment recording.
"""
import heapq
import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from tripledger.core.errors import AdjustmentError, ExpenseNotFoundError
from tripledger.db.base import utcnow
from tripledger.schemas.ledger import (
    Balance,
    ExpenseRecord,
    PaymentOutcome,
    PaymentReminder,
    SettlementRecord,
    SettlementTransaction,
)
from tripledger.services.balance_service import settled_flows
from tripledger.storage.interface import LedgerStore

logger = logging.getLogger(__name__)

ReminderListener = Callable[[PaymentReminder], None]


def plan_settlement(balances: Iterable[Balance]) -> List[SettlementTransaction]:
    """
    Turn net balances into a short list of payments that zero them out.

    Each currency is planned on its own. Within a currency the largest
    creditor is repeatedly matched with the largest debtor (ties go to the
    lower member id) until nobody is left. This yields at most N - 1
    payments for N members with a non-zero balance; it is not guaranteed
    to be the absolute minimum.
    """
    by_currency: Dict[str, Dict[int, int]] = defaultdict(dict)
    for balance in balances:
        nets = by_currency[balance.currency]
        nets[balance.member_id] = nets.get(balance.member_id, 0) + balance.net

    transactions = []
    for currency in sorted(by_currency):
        transactions.extend(minimize_transfers(by_currency[currency], currency))
    return transactions


def minimize_transfers(net_balances: Dict[int, int], currency: str) -> List[SettlementTransaction]:
    """
    Greedy largest-creditor / largest-debtor matching for one currency.

    ``net_balances`` maps member id to net minor units (positive = owed).
    """
    # Heaps keyed so the largest magnitude, then the lowest id, pops first
    creditors: List[Tuple[int, int]] = [(-net, uid) for uid, net in net_balances.items() if net > 0]
    debtors: List[Tuple[int, int]] = [(net, uid) for uid, net in net_balances.items() if net < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transfers = []
    while creditors and debtors:
        neg_credit, creditor_id = heapq.heappop(creditors)
        debt, debtor_id = heapq.heappop(debtors)

        amount = min(-neg_credit, -debt)
        transfers.append(SettlementTransaction(
            from_member_id=debtor_id,
            to_member_id=creditor_id,
            amount=amount,
            currency=currency,
        ))

        credit_left = -neg_credit - amount
        debt_left = debt + amount
        if credit_left > 0:
            heapq.heappush(creditors, (-credit_left, creditor_id))
        if debt_left < 0:
            heapq.heappush(debtors, (debt_left, debtor_id))

    if creditors or debtors:
        logger.warning(
            f"Balances in {currency} do not sum to zero; "
            f"{len(creditors)} creditors and {len(debtors)} debtors left unmatched"
        )
    return transfers


def list_settlements(expenses: Iterable[ExpenseRecord]) -> List[SettlementRecord]:
    """Completed share payments and refunds between members, newest first."""
    records = list(settled_flows(expenses))
    records.sort(key=lambda r: (r.paid_at is not None, r.paid_at), reverse=True)
    return records


class SettlementRecorder:
    """
    Marks individual shares as paid.

    Marking is idempotent: a repeat call, or a call that loses a race with
    a concurrent one, reports ``ALREADY_PAID`` and changes nothing.
    """

    def __init__(self, store: LedgerStore, listeners: Optional[List[ReminderListener]] = None):
        self.store = store
        self.listeners: List[ReminderListener] = list(listeners or [])

    def add_listener(self, listener: ReminderListener) -> None:
        self.listeners.append(listener)

    def apply_payment(self, expense_id: int, member_id: int) -> PaymentOutcome:
        """
        Mark ``member_id``'s share of ``expense_id`` as paid.

        Raises:
            ExpenseNotFoundError: Unknown expense, or member has no share in it
            AdjustmentError: The expense has been reversed
        """
        expense = self.store.fetch_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        split = expense.split_for(member_id)
        if split is None:
            raise ExpenseNotFoundError(expense_id, member_id)
        if split.is_paid:
            return PaymentOutcome.ALREADY_PAID
        if _is_reversed(expense, self.store.fetch_expenses(expense.trip_id)):
            raise AdjustmentError(f"Expense {expense_id} has been reversed; its shares cannot be paid")

        if not self.store.compare_and_set_split_paid(expense_id, member_id, paid_at=utcnow()):
            logger.info(f"Share {expense_id}/{member_id} was paid concurrently")
            return PaymentOutcome.ALREADY_PAID

        logger.info(f"Member {member_id} paid {split.owed_amount} {expense.currency} on expense {expense_id}")
        updated = self.store.fetch_expense(expense_id)
        if updated is not None and not updated.is_settled:
            self._notify(PaymentReminder(
                trip_id=updated.trip_id,
                expense_id=updated.id,
                paid_member_id=member_id,
                payer_id=updated.payer_id,
                outstanding_member_ids=updated.unpaid_member_ids(),
            ))
        return PaymentOutcome.OK

    def settle_transaction(self, trip_id: int, transaction: SettlementTransaction) -> List[Tuple[int, int]]:
        """
        Act on a planned payment by resolving the shares behind it.

        Every unpaid share between the two members in the transaction's
        currency is marked paid, in both directions, oldest expense first.
        Refunds left open by a reversal are included; shares of the reversed
        expense itself are not.
        Returns the ``(expense_id, member_id)`` pairs that this call paid.
        """
        pair = {transaction.from_member_id, transaction.to_member_id}
        expenses = self.store.fetch_expenses(trip_id)
        reversed_ids = {e.adjusts_expense_id for e in expenses if e.is_adjustment}

        paid = []
        bilateral = 0
        for expense in expenses:
            if (expense.currency != transaction.currency
                    or expense.id in reversed_ids or expense.payer_id not in pair):
                continue
            for split in expense.splits:
                if split.is_paid or split.member_id not in pair or split.member_id == expense.payer_id:
                    continue
                if self.apply_payment(expense.id, split.member_id) is PaymentOutcome.OK:
                    paid.append((expense.id, split.member_id))
                    if split.member_id == transaction.from_member_id:
                        bilateral += split.owed_amount
                    else:
                        bilateral -= split.owed_amount

        if bilateral != transaction.amount:
            logger.info(
                f"Settled {bilateral} {transaction.currency} of shares between members "
                f"{transaction.from_member_id} and {transaction.to_member_id}; "
                f"plan suggested {transaction.amount}"
            )
        return paid

    def _notify(self, reminder: PaymentReminder) -> None:
        for listener in self.listeners:
            try:
                listener(reminder)
            except Exception as e:
                logger.error(f"Reminder listener failed for expense {reminder.expense_id}: {e}", exc_info=True)


def _is_reversed(expense: ExpenseRecord, expenses: Iterable[ExpenseRecord]) -> bool:
    return any(other.adjusts_expense_id == expense.id for other in expenses)


def log_payment_reminder(reminder: PaymentReminder) -> None:
    """Default reminder listener: record the event for the notification pipeline."""
    logger.info(
        f"Expense {reminder.expense_id} on trip {reminder.trip_id} still awaits "
        f"members {reminder.outstanding_member_ids}"
    )
