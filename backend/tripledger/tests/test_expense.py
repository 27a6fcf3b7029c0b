"""
Tests for the expense ledger.
"""
import threading
from datetime import datetime, timezone

import pytest

from tripledger.core.errors import (
    AdjustmentError,
    ExpenseNotFoundError,
    MemberReferenceError,
    SplitValidationError,
    TripNotFoundError,
)
from tripledger.schemas.ledger import ExpenseCategory, ExpenseDraft, ExpenseState, SplitDraft
from tripledger.services.expense_service import ExpenseLedger, category_summary
from tripledger.services.split_service import equal_split


@pytest.fixture
def expense_ledger(store):
    return ExpenseLedger(store, tolerance=0)


def make_draft(trip, payer, total, splits, **kwargs):
    return ExpenseDraft(
        trip_id=trip.id,
        title=kwargs.pop("title", "Dinner"),
        total_amount=total,
        currency=kwargs.pop("currency", "INR"),
        payer_id=payer.id,
        splits=splits,
        **kwargs,
    )


class TestRecord:

    def test_record_and_get(self, expense_ledger, trip, members):
        a, b, c = members
        expense_id = expense_ledger.record(
            make_draft(trip, a, 30000, equal_split(30000, [a.id, b.id, c.id]), category=ExpenseCategory.FOOD)
        )
        expense = expense_ledger.get(expense_id)
        assert expense.total_amount == 30000
        assert expense.category == ExpenseCategory.FOOD
        assert [s.owed_amount for s in expense.splits] == [10000, 10000, 10000]
        assert sum(s.owed_amount for s in expense.splits) == expense.total_amount

    def test_payer_share_is_prepaid(self, expense_ledger, trip, members):
        a, b, c = members
        expense = expense_ledger.get(expense_ledger.record(
            make_draft(trip, a, 30000, equal_split(30000, [a.id, b.id, c.id]))
        ))
        assert expense.split_for(a.id).is_paid
        assert expense.split_for(a.id).paid_at is not None
        assert not expense.split_for(b.id).is_paid
        assert expense.state == ExpenseState.RECORDED
        assert not expense.is_settled

    def test_payer_only_split_is_settled(self, expense_ledger, trip, members):
        a = members[0]
        expense = expense_ledger.get(expense_ledger.record(
            make_draft(trip, a, 10000, [SplitDraft(member_id=a.id, owed_amount=10000)])
        ))
        assert expense.is_settled
        assert expense.state == ExpenseState.SETTLED

    def test_currency_is_normalized(self, expense_ledger, trip, members):
        a, b, _ = members
        expense = expense_ledger.get(expense_ledger.record(
            make_draft(trip, a, 500, equal_split(500, [a.id, b.id]), currency="usd")
        ))
        assert expense.currency == "USD"

    def test_occurred_at_is_kept(self, expense_ledger, trip, members):
        a, b, _ = members
        when = datetime(2024, 3, 1, 20, 30, tzinfo=timezone.utc)
        expense = expense_ledger.get(expense_ledger.record(
            make_draft(trip, a, 500, equal_split(500, [a.id, b.id]), occurred_at=when)
        ))
        assert expense.occurred_at == when

    def test_sum_mismatch_leaves_ledger_unchanged(self, expense_ledger, trip, members):
        a, b, _ = members
        draft = make_draft(trip, a, 10000, [
            SplitDraft(member_id=a.id, owed_amount=5000),
            SplitDraft(member_id=b.id, owed_amount=4900),
        ])
        with pytest.raises(SplitValidationError):
            expense_ledger.record(draft)
        assert expense_ledger.list(trip.id) == []

    def test_tolerance_residual_is_absorbed(self, store, trip, members):
        a, b, c = members
        tolerant = ExpenseLedger(store, tolerance=1)
        expense = tolerant.get(tolerant.record(make_draft(trip, a, 10000, [
            SplitDraft(member_id=a.id, owed_amount=3333),
            SplitDraft(member_id=b.id, owed_amount=3333),
            SplitDraft(member_id=c.id, owed_amount=3333),
        ])))
        assert sum(s.owed_amount for s in expense.splits) == 10000
        assert expense.split_for(a.id).owed_amount == 3334

    def test_unknown_split_member(self, expense_ledger, store, trip, members):
        other_trip = store.create_trip("Other", "INR")
        stranger = store.add_member(other_trip.id, "Z")
        a = members[0]
        with pytest.raises(MemberReferenceError):
            expense_ledger.record(make_draft(trip, a, 200, equal_split(200, [a.id, stranger.id])))
        assert expense_ledger.list(trip.id) == []

    def test_unknown_payer(self, expense_ledger, store, trip, members):
        other_trip = store.create_trip("Other", "INR")
        stranger = store.add_member(other_trip.id, "Z")
        a, b, _ = members
        with pytest.raises(MemberReferenceError):
            expense_ledger.record(make_draft(trip, stranger, 200, equal_split(200, [a.id, b.id])))

    def test_unknown_trip(self, expense_ledger, trip, members):
        a = members[0]
        draft = make_draft(trip, a, 100, [SplitDraft(member_id=a.id, owed_amount=100)])
        with pytest.raises(TripNotFoundError):
            expense_ledger.record(draft.model_copy(update={"trip_id": 999}))

    def test_adjustment_drafts_rejected(self, expense_ledger, trip, members):
        a = members[0]
        draft = make_draft(trip, a, 100, [SplitDraft(member_id=a.id, owed_amount=100)], adjusts_expense_id=1)
        with pytest.raises(AdjustmentError):
            expense_ledger.record(draft)


class TestListAndGet:

    def test_list_keeps_insertion_order(self, expense_ledger, trip, members):
        a, b, _ = members
        ids = [
            expense_ledger.record(make_draft(trip, a, 100 * i, equal_split(100 * i, [a.id, b.id]), title=f"E{i}"))
            for i in (3, 1, 2)
        ]
        assert [e.id for e in expense_ledger.list(trip.id)] == ids
        assert [e.title for e in expense_ledger.list(trip.id)] == ["E3", "E1", "E2"]

    def test_get_unknown(self, expense_ledger):
        with pytest.raises(ExpenseNotFoundError):
            expense_ledger.get(12345)


class TestReverse:

    def test_reverse_appends_negation(self, expense_ledger, trip, members):
        a, b, c = members
        original_id = expense_ledger.record(make_draft(trip, a, 30000, equal_split(30000, [a.id, b.id, c.id])))
        adjustment_id = expense_ledger.reverse(original_id)

        adjustment = expense_ledger.get(adjustment_id)
        assert adjustment.adjusts_expense_id == original_id
        assert adjustment.total_amount == -30000
        assert [s.owed_amount for s in adjustment.splits] == [-10000, -10000, -10000]
        assert adjustment.is_settled
        assert adjustment.title == "Reversal of Dinner"

        # The original stays untouched
        original = expense_ledger.get(original_id)
        assert original.total_amount == 30000
        assert [e.id for e in expense_ledger.list(trip.id)] == [original_id, adjustment_id]

    def test_cannot_reverse_twice(self, expense_ledger, trip, members):
        a, b, _ = members
        original_id = expense_ledger.record(make_draft(trip, a, 200, equal_split(200, [a.id, b.id])))
        expense_ledger.reverse(original_id)
        with pytest.raises(AdjustmentError, match="already been reversed"):
            expense_ledger.reverse(original_id)

    def test_cannot_reverse_adjustment(self, expense_ledger, trip, members):
        a, b, _ = members
        original_id = expense_ledger.record(make_draft(trip, a, 200, equal_split(200, [a.id, b.id])))
        adjustment_id = expense_ledger.reverse(original_id)
        with pytest.raises(AdjustmentError, match="is an adjustment"):
            expense_ledger.reverse(adjustment_id)

    def test_paid_shares_become_open_refunds(self, expense_ledger, store, trip, members):
        a, b, c = members
        original_id = expense_ledger.record(make_draft(trip, a, 30000, equal_split(30000, [a.id, b.id, c.id])))
        store.compare_and_set_split_paid(original_id, b.id)

        adjustment = expense_ledger.get(expense_ledger.reverse(original_id))
        assert adjustment.split_for(a.id).is_paid
        assert adjustment.split_for(c.id).is_paid
        refund = adjustment.split_for(b.id)
        assert not refund.is_paid
        assert refund.paid_at is None
        assert not adjustment.is_settled
        assert adjustment.unpaid_member_ids() == [b.id]

    def test_concurrent_reversals_apply_once(self, expense_ledger, trip, members):
        a, b, _ = members
        original_id = expense_ledger.record(make_draft(trip, a, 200, equal_split(200, [a.id, b.id])))
        results = []
        barrier = threading.Barrier(8)

        def reverse():
            barrier.wait()
            try:
                results.append(expense_ledger.reverse(original_id))
            except AdjustmentError:
                results.append(None)

        threads = [threading.Thread(target=reverse) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len([r for r in results if r is not None]) == 1
        assert results.count(None) == 7
        adjustments = [e for e in expense_ledger.list(trip.id) if e.is_adjustment]
        assert len(adjustments) == 1

    def test_store_rejects_second_adjustment(self, expense_ledger, store, trip, members):
        a, b, _ = members
        original_id = expense_ledger.record(make_draft(trip, a, 200, equal_split(200, [a.id, b.id])))
        expense_ledger.reverse(original_id)

        draft = make_draft(trip, a, -200, [SplitDraft(member_id=a.id, owed_amount=-100),
                                           SplitDraft(member_id=b.id, owed_amount=-100)],
                           adjusts_expense_id=original_id)
        with pytest.raises(AdjustmentError):
            store.insert_expense(draft, [], is_settled=True)
        assert len(expense_ledger.list(trip.id)) == 2


class TestCategorySummary:

    def test_totals_per_category_and_currency(self, expense_ledger, trip, members):
        a, b, _ = members
        expense_ledger.record(make_draft(trip, a, 1000, equal_split(1000, [a.id, b.id]), category=ExpenseCategory.FOOD))
        expense_ledger.record(make_draft(trip, b, 500, equal_split(500, [a.id, b.id]), category=ExpenseCategory.FOOD))
        expense_ledger.record(make_draft(trip, a, 8000, equal_split(8000, [a.id, b.id]), category=ExpenseCategory.HOTEL))
        expense_ledger.record(make_draft(trip, a, 300, equal_split(300, [a.id, b.id]), currency="EUR"))

        summary = category_summary(expense_ledger.list(trip.id))
        rows = [(s.currency, s.category, s.total_amount, s.expense_count) for s in summary]
        assert rows == [
            ("EUR", ExpenseCategory.OTHER, 300, 1),
            ("INR", ExpenseCategory.HOTEL, 8000, 1),
            ("INR", ExpenseCategory.FOOD, 1500, 2),
        ]

    def test_reversal_cancels_original(self, expense_ledger, trip, members):
        a, b, _ = members
        expense_id = expense_ledger.record(make_draft(trip, a, 1000, equal_split(1000, [a.id, b.id])))
        expense_ledger.reverse(expense_id)
        (row,) = category_summary(expense_ledger.list(trip.id))
        assert row.total_amount == 0
        assert row.expense_count == 0
