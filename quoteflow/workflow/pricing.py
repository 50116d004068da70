"""Line amounts, totals and the amount-in-words line of a quotation.

Everything here is pure. Stored amounts are never trusted: callers re-run
``price_content`` whenever items change and again at finalization.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from quoteflow.errors import ValidationFailed
from quoteflow.models import QuotationContent, QuotationItem

TWO_PLACES = Decimal("0.01")

# One past the largest amount the TRILLION scale can spell out
MAX_AMOUNT = Decimal(10) ** 15

_ONES = [
    "", "ONE", "TWO", "THREE", "FOUR", "FIVE", "SIX", "SEVEN", "EIGHT", "NINE",
    "TEN", "ELEVEN", "TWELVE", "THIRTEEN", "FOURTEEN", "FIFTEEN", "SIXTEEN",
    "SEVENTEEN", "EIGHTEEN", "NINETEEN",
]
_TENS = ["", "", "TWENTY", "THIRTY", "FORTY", "FIFTY", "SIXTY", "SEVENTY", "EIGHTY", "NINETY"]
_SCALES = ["", "THOUSAND", "MILLION", "BILLION", "TRILLION"]


def line_amount(qty: Decimal, unit_price: Decimal) -> Decimal:
    return Decimal(qty) * Decimal(unit_price)


def compute_totals(items: Sequence[QuotationItem]) -> tuple[list[QuotationItem], Decimal]:
    """Return copies of ``items`` with fresh amounts, and their sum."""
    priced = [
        item.model_copy(update={"amount": line_amount(item.qty, item.unit_price)})
        for item in items
    ]
    total = sum((item.amount for item in priced), Decimal("0"))
    return priced, total


def price_content(
    content: QuotationContent,
    currency_name: str = "QATAR RIYALS",
    currency_subunit: str = "DIRHAMS",
) -> QuotationContent:
    """Copy of ``content`` with amounts, total and total-in-words recomputed."""
    items, total = compute_totals(content.items)
    return content.model_copy(
        update={
            "items": items,
            "total": total,
            "total_amount_in_words": amount_in_words(total, currency_name, currency_subunit),
        }
    )


def amount_in_words(
    total: Decimal,
    currency_name: str = "QATAR RIYALS",
    currency_subunit: str = "DIRHAMS",
) -> str:
    """Render a total the way it is printed on the quotation.

    >>> amount_in_words(Decimal("10600"))
    'TEN THOUSAND AND SIX HUNDRED QATAR RIYALS ONLY.'
    >>> amount_in_words(Decimal("0"))
    'ZERO QATAR RIYALS ONLY.'
    """
    total = Decimal(total)
    if total < 0:
        raise ValidationFailed(f"Cannot render a negative amount in words: {total}")
    if total >= MAX_AMOUNT:
        raise ValidationFailed(f"Amount too large to render in words: {total}")
    amount = total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    whole = int(amount)
    fraction = int((amount - whole) * 100)

    text = f"{integer_to_words(whole)} {currency_name}"
    if fraction:
        text += f" AND {integer_to_words(fraction)} {currency_subunit}"
    return f"{text} ONLY."


def integer_to_words(n: int) -> str:
    """Short-scale English words, AND between the last two non-zero groups."""
    if n < 0:
        raise ValidationFailed("Negative numbers are not supported")
    if n == 0:
        return "ZERO"

    groups: list[tuple[int, int]] = []
    scale = 0
    while n:
        n, value = divmod(n, 1000)
        if value:
            groups.append((scale, value))
        scale += 1
    if scale > len(_SCALES):
        raise ValidationFailed("Amount too large to render in words")

    words = [
        _group_words(value) + (f" {_SCALES[s]}" if s else "")
        for s, value in reversed(groups)
    ]
    if len(words) == 1:
        return words[0]
    return " ".join(words[:-1]) + " AND " + words[-1]


def _group_words(n: int) -> str:
    parts = []
    hundreds, rest = divmod(n, 100)
    if hundreds:
        parts.append(f"{_ONES[hundreds]} HUNDRED")
    if rest:
        if rest < 20:
            parts.append(_ONES[rest])
        else:
            tens, ones = divmod(rest, 10)
            parts.append(_TENS[tens] + (f"-{_ONES[ones]}" if ones else ""))
    return " ".join(parts)
