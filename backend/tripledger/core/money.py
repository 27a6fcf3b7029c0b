"""
Currency helpers for converting between display amounts and minor units.

Inside the ledger every amount is an ``int`` count of the currency's
smallest unit (paise, cents, yen). Decimal amounts only exist at the
API boundary.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

# ISO 4217 currencies without the usual two decimal places
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})
THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"})


def normalize_currency(code: str) -> str:
    """Upper-case and validate a three-letter currency code."""
    if code is None:
        raise ValueError("Currency code is required")
    normalized = code.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError(f"Invalid currency code: {code!r}")
    return normalized


def minor_exponent(currency: str) -> int:
    """Number of decimal places used by a currency."""
    currency = normalize_currency(currency)
    if currency in ZERO_DECIMAL_CURRENCIES:
        return 0
    if currency in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def to_minor(amount: Union[Decimal, int, str], currency: str, strict: bool = False) -> int:
    """
    Convert a major-unit amount to integer minor units.

    Rounds half-up to the currency's precision. With ``strict=True`` an
    amount carrying more precision than the currency allows is rejected
    instead of rounded.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")

    exponent = minor_exponent(currency)
    quantum = Decimal(1).scaleb(-exponent)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    if strict and rounded != value:
        raise ValueError(
            f"Amount {amount} has more than {exponent} decimal places for {currency.upper()}"
        )
    return int(rounded.scaleb(exponent))


def from_minor(units: int, currency: str) -> Decimal:
    """Convert integer minor units back to a Decimal in major units."""
    exponent = minor_exponent(currency)
    return Decimal(units).scaleb(-exponent).quantize(Decimal(1).scaleb(-exponent))
