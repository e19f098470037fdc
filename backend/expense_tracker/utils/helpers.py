"""Miscellaneous helper functions."""

from __future__ import annotations

import datetime as dt
import math
import re
from typing import Any, Optional

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

# Sign and digits with a separator every three digits, e.g. "1,234,567"
_THOUSANDS_GROUPS_RE = re.compile(r"^[+-]?\d{1,3}([.,]\d{3})+$")
_DECIMAL_TAIL_RE = re.compile(r"[.,]\d{1,2}$")

# Formats seen on receipts besides ISO 8601, tried in order
_DATE_FORMATS = (
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%m-%d-%Y",
    "%d %b %Y",
    "%b %d, %Y",
)


def utcnow() -> dt.datetime:
    """Current UTC time as a naive datetime (the database stores naive UTC)."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def is_valid_user_id(value: Any) -> bool:
    """Return True for 24 character hexadecimal user identifiers."""
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def parse_iso_datetime(value: str | None) -> Optional[dt.datetime]:
    """Parse an ISO8601 datetime string into a :class:`datetime` object.

    The standard ``datetime.fromisoformat`` helper does not accept a lowercase
    ``z`` as the UTC designator on older interpreters. Some data sources
    provide timestamps that end with ``z`` instead of the canonical ``Z``.
    This function normalises that case and returns ``None`` if the value
    cannot be parsed.
    """
    if not value:
        return None
    try:
        if value.endswith("z") or value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return dt.datetime.fromisoformat(value)
    except ValueError:
        return None


def parse_receipt_date(value: Any) -> Optional[dt.datetime]:
    """Parse a date printed on a receipt into a naive UTC datetime.

    Accepts ISO 8601 first, then a handful of common receipt layouts.
    Returns ``None`` when nothing matches.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    parsed = parse_iso_datetime(value)
    if parsed is None:
        for fmt in _DATE_FORMATS:
            try:
                parsed = dt.datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed


def _normalize_separators(text: str) -> Optional[str]:
    """Rewrite ``text`` so ``.`` is the only (decimal) separator.

    When both ``,`` and ``.`` occur, the last one is the decimal mark.
    A lone separator followed by exactly three digits in every group is a
    thousands separator; followed by one or two digits it is the decimal
    mark. Anything else is ambiguous and yields ``None``.
    """
    if "," in text and "." in text:
        decimal = "," if text.rfind(",") > text.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        head, _, tail = text.rpartition(decimal)
        if decimal in head or not _THOUSANDS_GROUPS_RE.match(head):
            return None
        return head.replace(thousands, "") + "." + tail
    for sep in (",", "."):
        if sep not in text:
            continue
        if _THOUSANDS_GROUPS_RE.match(text) and (text.count(sep) > 1 or sep == ","):
            return text.replace(sep, "")
        if text.count(sep) == 1 and _DECIMAL_TAIL_RE.search(text):
            return text.replace(sep, ".")
        if sep == "." and text.count(sep) == 1:
            return text
        return None
    return text


def parse_amount(value: Any) -> Optional[float]:
    """Parse a monetary amount from a number or a string like ``"$1,234.50"``.

    Decimal commas (``"12,50"``, ``"1.234,56"``) are understood. Returns
    ``None`` when the value is missing, ambiguous or not a finite number.
    Booleans are rejected even though they are ``int`` subclasses.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        cleaned = re.sub(r"[^0-9.,+-]", "", value)
        cleaned = _normalize_separators(cleaned) if cleaned else None
        if not cleaned:
            return None
        try:
            amount = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(amount):
        return None
    return amount
