"""Product barcode normalisation.

Supplier sheets, scanners and the Vendlive export all spell the same EAN/UPC a
little differently (spaces, dashes, a dropped leading zero). Products are
stored under one canonical form and looked up through every alias.
"""

from __future__ import annotations

import re

__all__ = ["barcode_aliases", "normalize_barcode", "split_barcode_list"]

_ALPHA_RE = re.compile(r"[A-Za-z]")
_NON_DIGIT_RE = re.compile(r"\D")
_LIST_SEPARATOR_RE = re.compile(r"[;,|/]")

UPC_A_LENGTH = 12


def _clean(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip())


def normalize_barcode(raw: str | None) -> str | None:
    """Return the canonical barcode or ``None`` for blank input.

    Numeric codes lose punctuation and a 12 digit UPC-A is widened to EAN-13
    with a leading zero. Anything containing letters is upper-cased.
    """

    if raw is None:
        return None
    cleaned = _clean(str(raw))
    if not cleaned:
        return None

    if not _ALPHA_RE.search(cleaned):
        digits = _NON_DIGIT_RE.sub("", cleaned)
        if digits:
            if len(digits) == UPC_A_LENGTH:
                digits = "0" + digits
            return digits

    return cleaned.upper()


def barcode_aliases(raw: str | None) -> list[str]:
    """Every spelling of ``raw`` that should match the same product, canonical first."""

    if raw is None:
        return []
    cleaned = _clean(str(raw))
    if not cleaned:
        return []

    aliases: list[str] = []

    def add(candidate: str | None) -> None:
        if candidate and candidate not in aliases:
            aliases.append(candidate)

    add(normalize_barcode(cleaned))
    if not _ALPHA_RE.search(cleaned):
        digits = _NON_DIGIT_RE.sub("", cleaned)
        add(digits)
        if len(digits) == UPC_A_LENGTH + 1 and digits.startswith("0"):
            add(digits[1:])
    add(cleaned.upper())
    return aliases


def split_barcode_list(raw: str | None) -> list[str]:
    """Split a multi-code cell (``"5060..., 5061..."``) into canonical barcodes."""

    if not raw:
        return []
    codes: list[str] = []
    for part in _LIST_SEPARATOR_RE.split(raw):
        code = normalize_barcode(part)
        if code and code not in codes:
            codes.append(code)
    return codes
