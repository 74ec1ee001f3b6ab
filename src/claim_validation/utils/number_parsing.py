"""Currency figure extraction from free text.

Clause and document text states money as "$50,000", "$1,250.00" or
"USD 2500".  Extraction is deliberately simple token matching: ranges,
several figures per sentence and non-USD formats are not interpreted,
only collected.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

CURRENCY_TOKEN = re.compile(r"(?:\$|\bUSD\s?)\s?(\d[\d,]*(?:\.\d{1,2})?)", re.IGNORECASE)


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a money value that may carry a currency prefix or separators.

    Handles:
    - Currency prefixes: "$1,000" -> 1000, "USD 250" -> 250
    - Thousand separators: "1,000.50" -> 1000.50
    - European comma decimal: "249,77" -> 249.77

    Args:
        value: The value to parse (string, int, float, Decimal or None)

    Returns:
        Parsed Decimal or None if parsing fails or value is None/empty
    """
    if value is None:
        return None

    if isinstance(value, Decimal):
        return value

    if isinstance(value, (int, float)):
        return Decimal(str(value))

    if not isinstance(value, str):
        return None

    text = value.strip()
    text = re.sub(r"^(?:\$|USD)\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*USD$", "", text, flags=re.IGNORECASE).strip()
    if not text:
        return None

    has_comma = "," in text
    has_dot = "." in text
    if has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            # European: 1.000,50
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        parts = text.split(",")
        if all(len(p) == 3 and p.isdigit() for p in parts[1:]):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")

    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def extract_currency_amounts(text: str) -> List[Decimal]:
    """All currency figures in ``text``, in order of appearance."""
    if not text:
        return []
    amounts: List[Decimal] = []
    for match in CURRENCY_TOKEN.finditer(text):
        amount = parse_amount(match.group(1).rstrip(",."))
        if amount is not None:
            amounts.append(amount)
    return amounts


def largest_amount(text: str) -> Optional[Decimal]:
    amounts = extract_currency_amounts(text)
    return max(amounts) if amounts else None


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"
