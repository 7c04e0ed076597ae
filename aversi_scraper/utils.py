"""Text and price normalization shared by all extractors."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .models import RawRecord, Record

# Georgian lari markers as they appear on both sites.
CURRENCY_MARKERS = ("₾", "ლარი", "gel", "ლ")

_WHITESPACE = re.compile(r"\s+")
# C0 controls other than tab/newline/CR, plus DEL; spreadsheet cells reject them.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_NUMBER = re.compile(r"\d[\d.,]*")


def clean_text(value: object) -> str:
    """Drop control characters, collapse whitespace runs (tabs, newlines, NBSP) to one space and strip."""
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    text = _CONTROL_CHARS.sub("", str(value))
    return _WHITESPACE.sub(" ", text).strip()


def clean_price(value: object) -> str:
    """Canonicalize price text to a two-decimal string, or "" if there is no number.

    Handles formats like:
    - "15,90 ₾"
    - "1.299,00"
    - "1,299.00 ლარი"
    - "8.00"

    A lone separator followed by one or two digits is the decimal point;
    followed by three or more it groups thousands.
    """
    if value is None:
        return ""
    text = str(value).lower()
    for marker in CURRENCY_MARKERS:
        text = text.replace(marker, "")
    text = _WHITESPACE.sub("", text)

    if not (match := _NUMBER.search(text)):
        return ""
    num = match.group(0).rstrip(".,")

    last_comma = num.rfind(",")
    last_dot = num.rfind(".")

    if last_comma != -1 and last_dot != -1:
        # Assume last separator is decimal; the other is thousands.
        if last_comma > last_dot:
            num = num.replace(".", "").replace(",", ".")
        else:
            num = num.replace(",", "")
    elif last_comma != -1:
        digits_after = len(num) - last_comma - 1
        if 1 <= digits_after <= 2 and num.count(",") == 1:
            num = num.replace(",", ".")
        else:
            num = num.replace(",", "")
    elif last_dot != -1:
        digits_after = len(num) - last_dot - 1
        if not (1 <= digits_after <= 2 and num.count(".") == 1):
            num = num.replace(".", "")

    try:
        amount = Decimal(num).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ""
    return f"{amount:.2f}"


def normalize_record(raw: RawRecord) -> Record | None:
    """Turn an extracted record into its canonical form; None if it has no title."""
    title = clean_text(raw.title)
    if not title:
        return None
    return Record(
        product_code=clean_text(raw.product_code),
        title=title,
        price=clean_price(raw.price_text),
        price_old=clean_price(raw.price_old_text),
        category=clean_text(raw.category),
        page_number=clean_text(raw.page_number),
        source=raw.source_site,
    )
