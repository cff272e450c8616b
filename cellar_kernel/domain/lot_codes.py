"""
Human-readable code formats for lots and transfers.

Pure formatting and recognition.  Sequence numbers come from
``LotCodeService``, which owns the locked counters.

Formats:
    FERM-20260115-0001        lot code, per tenant per day (prefix by phase)
    FERM-20260115-0001-A      split child, suffixes A..Z, AA, AB, ...
    BLEND-2026-0001           blend code, per tenant per year
    SPLIT-20260115-0001       transfer code, per tenant per day
"""

import re
from datetime import date

_SEQUENCE_WIDTH = 4


def format_lot_code(prefix: str, day: date, sequence: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{sequence:0{_SEQUENCE_WIDTH}d}"


def format_blend_code(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year:04d}-{sequence:0{_SEQUENCE_WIDTH}d}"


def format_transfer_code(prefix: str, day: date, sequence: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{sequence:0{_SEQUENCE_WIDTH}d}"


def child_suffix(index: int) -> str:
    """
    Spreadsheet-style suffix for the index-th split child.

    0 -> "A", 25 -> "Z", 26 -> "AA", 27 -> "AB".
    """
    if index < 0:
        raise ValueError(f"child index must be >= 0 (got {index})")
    letters = []
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters.append(chr(ord("A") + rem))
    return "".join(reversed(letters))


def child_lot_code(parent_code: str, index: int) -> str:
    return f"{parent_code}-{child_suffix(index)}"


def is_blend_code(code: str | None, prefix: str = "BLEND") -> bool:
    """True when ``code`` already has the BLEND-YYYY-NNNN shape."""
    if not code:
        return False
    pattern = rf"^{re.escape(prefix)}-\d{{4}}-\d{{{_SEQUENCE_WIDTH},}}$"
    return re.match(pattern, code) is not None
