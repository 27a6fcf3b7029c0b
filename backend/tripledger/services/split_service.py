"""
Split validation and split strategies.

Everything here is pure: amounts in, amounts out, no storage access.
Strategies shape caller input into ``SplitDraft`` lists whose sum
matches the total exactly; ``validate_splits`` checks any split set
against its total.
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from tripledger.core.errors import MemberReferenceError, SplitValidationError
from tripledger.schemas.ledger import SplitDraft


def validate_splits(
    total_amount: int,
    splits: Sequence[SplitDraft],
    member_ids: Optional[Iterable[int]] = None,
    tolerance: int = 0,
    trip_id: Optional[int] = None,
    adjustment: bool = False,
) -> None:
    """
    Check a proposed split set against its total.

    Args:
        total_amount: Expense total in minor units
        splits: Proposed shares
        member_ids: Trip membership; when given, every split must reference a member
        tolerance: Largest allowed |sum(splits) - total| in minor units
        trip_id: Used in the reference error message only
        adjustment: Correction entries carry a negative total and non-positive shares

    Raises:
        SplitValidationError: Empty set, wrong sign, duplicate member or sum mismatch
        MemberReferenceError: A split names someone outside the trip
    """
    issues = []
    if not splits:
        raise SplitValidationError(["Split set is empty"])

    if adjustment:
        if total_amount >= 0:
            issues.append("Adjustment total must be negative")
        issues.extend(
            f"Adjustment share for member {s.member_id} must not be positive"
            for s in splits if s.owed_amount > 0
        )
    else:
        if total_amount <= 0:
            issues.append("Total amount must be positive")
        issues.extend(
            f"Owed amount for member {s.member_id} is negative"
            for s in splits if s.owed_amount < 0
        )

    seen = set()
    for split in splits:
        if split.member_id in seen:
            issues.append(f"Member {split.member_id} appears more than once")
        seen.add(split.member_id)

    split_sum = sum(s.owed_amount for s in splits)
    if abs(split_sum - total_amount) > tolerance:
        issues.append(f"Splits sum to {split_sum}, expected {total_amount}")

    if issues:
        raise SplitValidationError(issues)

    if member_ids is not None:
        known = set(member_ids)
        unknown = [s.member_id for s in splits if s.member_id not in known]
        if unknown:
            raise MemberReferenceError(trip_id, unknown)


def absorb_residual(total_amount: int, splits: Sequence[SplitDraft]) -> List[SplitDraft]:
    """Fold a within-tolerance mismatch into the first split so the sum is exact."""
    residual = total_amount - sum(s.owed_amount for s in splits)
    if residual == 0:
        return list(splits)
    first = splits[0]
    adjusted = first.owed_amount + residual
    if (total_amount > 0 and adjusted < 0) or (total_amount < 0 and adjusted > 0):
        raise SplitValidationError(
            [f"Cannot absorb residual {residual} into share of member {first.member_id}"]
        )
    return [SplitDraft(member_id=first.member_id, owed_amount=adjusted)] + list(splits[1:])


def _check_members(member_ids: Sequence[int]) -> None:
    if not member_ids:
        raise SplitValidationError(["At least one member is required"])
    if len(set(member_ids)) != len(member_ids):
        raise SplitValidationError(["Member list contains duplicates"])


def _spread_remainder(shares: List[int], remainder: int, eligible: Optional[List[int]] = None) -> List[int]:
    # One extra minor unit to each of the first `remainder` eligible members
    if eligible is None:
        eligible = list(range(len(shares)))
    for i in eligible[:remainder]:
        shares[i] += 1
    return shares


def equal_split(total_amount: int, member_ids: Sequence[int]) -> List[SplitDraft]:
    """
    Divide a total evenly.

    Leftover minor units go one each to the first members listed,
    so 100 split three ways is 34/33/33.
    """
    _check_members(member_ids)
    if total_amount < 0:
        raise SplitValidationError(["Total amount must not be negative"])
    base, remainder = divmod(total_amount, len(member_ids))
    shares = _spread_remainder([base] * len(member_ids), remainder)
    return [SplitDraft(member_id=m, owed_amount=a) for m, a in zip(member_ids, shares)]


def exact_split(amounts: Union[Mapping[int, int], Iterable[Tuple[int, int]]]) -> List[SplitDraft]:
    """Use caller-supplied amounts as-is. Accepts a mapping or (member_id, amount) pairs."""
    pairs = list(amounts.items() if isinstance(amounts, Mapping) else amounts)
    if not pairs:
        raise SplitValidationError(["At least one member is required"])
    return [SplitDraft(member_id=m, owed_amount=a) for m, a in pairs]


def percentage_split(
    total_amount: int,
    percentages: Mapping[int, Union[Decimal, int, str]],
) -> List[SplitDraft]:
    """
    Convert percentages (summing to exactly 100) into amounts.

    Each share is floored; the units lost to flooring are handed out one
    each to the first members with a non-zero percentage.
    """
    member_ids = list(percentages.keys())
    _check_members(member_ids)
    if total_amount < 0:
        raise SplitValidationError(["Total amount must not be negative"])

    pcts: Dict[int, Decimal] = {m: Decimal(str(p)) for m, p in percentages.items()}
    negative = [m for m, p in pcts.items() if p < 0]
    if negative:
        raise SplitValidationError([f"Percentage for member {m} is negative" for m in negative])
    pct_total = sum(pcts.values(), Decimal(0))
    if pct_total != Decimal(100):
        raise SplitValidationError([f"Percentages sum to {pct_total}, expected 100"])

    shares = [
        int((Decimal(total_amount) * pcts[m] / Decimal(100)).to_integral_value(rounding=ROUND_FLOOR))
        for m in member_ids
    ]
    # Members on 0% never pick up leftover units
    eligible = [i for i, m in enumerate(member_ids) if pcts[m] > 0]
    shares = _spread_remainder(shares, total_amount - sum(shares), eligible)
    return [SplitDraft(member_id=m, owed_amount=a) for m, a in zip(member_ids, shares)]
