"""
Totals calculator and money formatting helpers.

All arithmetic runs on Decimal without intermediate rounding; values are
rounded to two decimals (ROUND_HALF_UP) only when formatted for display.
Items can be ORM rows, pydantic models or plain dicts exposing
`quantity`, `unit_price` and `tax_rate`.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")

ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

# Name of the fractional unit per currency name
FRACTION_NAMES = {
    "Rupees": "Paise",
    "Dollars": "Cents",
    "Euros": "Cents",
    "Pounds": "Pence",
}


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def line_subtotal(item: Any) -> Decimal:
    """quantity * unit_price"""
    return to_decimal(_field(item, "quantity")) * to_decimal(_field(item, "unit_price"))


def line_tax(item: Any) -> Decimal:
    """line subtotal * tax_rate / 100"""
    return line_subtotal(item) * to_decimal(_field(item, "tax_rate")) / HUNDRED


def compute_totals(items: Iterable[Any]) -> InvoiceTotals:
    """Sum per-line subtotals and per-line taxes; total is always their sum."""
    subtotal = Decimal("0")
    tax_amount = Decimal("0")
    for item in items:
        subtotal += line_subtotal(item)
        tax_amount += line_tax(item)
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def quantize_money(amount: Any) -> Decimal:
    return to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _below_thousand(number: int) -> str:
    words = []
    hundreds, rest = divmod(number, 100)
    if hundreds:
        words.append(f"{ONES[hundreds]} Hundred")
    if rest >= 20:
        tens, ones = divmod(rest, 10)
        words.append(TENS[tens] if not ones else f"{TENS[tens]} {ONES[ones]}")
    elif rest:
        words.append(ONES[rest])
    return " ".join(words)


def number_to_words(number: int) -> str:
    """Spell a non-negative integer using Indian grouping (crore, lakh, thousand)."""
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "Zero"

    crores, rest = divmod(number, 10_000_000)
    lakhs, rest = divmod(rest, 100_000)
    thousands, rest = divmod(rest, 1_000)

    words = []
    if crores:
        words.append(f"{number_to_words(crores)} Crore")
    if lakhs:
        words.append(f"{_below_thousand(lakhs)} Lakh")
    if thousands:
        words.append(f"{_below_thousand(thousands)} Thousand")
    if rest:
        words.append(_below_thousand(rest))
    return " ".join(words)


def amount_in_words(amount: Any, currency_name: str = "Rupees", fraction_name: Optional[str] = None) -> str:
    """
    Convert a monetary amount to words, e.g. 100.50 ->
    "One Hundred Rupees and Fifty Paise Only".

    The fractional clause is only added when the rounded amount has a
    non-zero decimal part.
    """
    value = quantize_money(amount)
    if value < 0:
        raise ValueError("amount must be non-negative")

    whole = int(value)
    fraction = int((value - whole) * 100)
    fraction_name = fraction_name or FRACTION_NAMES.get(currency_name, "Paise")

    words = f"{number_to_words(whole)} {currency_name}"
    if fraction:
        words += f" and {number_to_words(fraction)} {fraction_name}"
    words += " Only"
    return re.sub(r"\s+", " ", words).strip()


def _indian_grouping(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_amount(amount: Any, currency_code: str = "INR") -> str:
    """Two-decimal string with Indian digit grouping for INR, western grouping otherwise."""
    value = quantize_money(amount)
    if currency_code != "INR":
        return f"{value:,.2f}"
    sign = "-" if value < 0 else ""
    whole, _, decimals = f"{abs(value):.2f}".partition(".")
    return f"{sign}{_indian_grouping(whole)}.{decimals}"


def format_money(amount: Any, symbol: str, currency_code: str = "INR") -> str:
    return f"{symbol}{format_amount(amount, currency_code)}"


def format_rate(rate: Any) -> str:
    """Tax rate without trailing zeros: 18.00 -> "18", 12.50 -> "12.5"."""
    value = to_decimal(rate).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    text = f"{value:f}".rstrip("0").rstrip(".")
    return text or "0"
