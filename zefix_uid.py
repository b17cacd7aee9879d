"""
Swiss UID (Unternehmens-Identifikationsnummer) helpers.

UIDs identify Swiss business entities and are displayed as CHE-123.456.789,
but show up in many variants: "che 123 456 789", "CHE123456789 MWST",
a bare "123456789", and so on. These helpers reduce all of them to the
9-digit core and render the core back to the canonical display form.

Parsing is advisory: invalid input yields None (or is echoed back by
format_uid), never an exception.

Usage:
    from zefix_uid import normalize_uid, format_uid
    normalize_uid("che 123 456 789 mwst")   # "123456789"
    format_uid("123456789")                 # "CHE-123.456.789"
"""

import re
from typing import NewType, Optional

# Exactly 9 ASCII digits, no prefix, no separators
UidCore = NewType("UidCore", str)

UID_CORE_RE = re.compile(r"^[0-9]{9}$")

# CHE prefix, 9 digits separated by any mix of spaces, periods and hyphens,
# optional VAT suffix
UID_INPUT_RE = re.compile(
    r"^che[\s.\-]*((?:[0-9][\s.\-]*){9})(?:\s*(?:mwst|tva|iva))?$",
    re.IGNORECASE,
)

NON_DIGIT_RE = re.compile(r"[^0-9]")


def normalize_uid(value: Optional[str]) -> Optional[UidCore]:
    """
    Normalize a UID to its 9-digit core.

    Input matching the CHE pattern contributes the digits of its digit run.
    Anything else falls back to all digits found in the input, so a bare
    "123456789" is accepted too.

    Args:
        value: Free-form UID string (None and empty strings are allowed)

    Returns:
        The 9-digit core, or None if the input is not a valid UID
    """
    if not value or not isinstance(value, str):
        return None
    trimmed = value.strip()

    match = UID_INPUT_RE.match(trimmed)
    digits = NON_DIGIT_RE.sub("", match.group(1) if match else trimmed)

    if not UID_CORE_RE.match(digits):
        return None
    return UidCore(digits)


def format_uid(value: str) -> str:
    """
    Format a UID for display as CHE-123.456.789.

    Returns the input unchanged when it is not a valid UID.
    """
    core = normalize_uid(value)
    if core is None:
        return value
    return f"CHE-{core[:3]}.{core[3:6]}.{core[6:]}"


def is_valid_uid_format(value: Optional[str]) -> bool:
    """Check the structure of a UID (no checksum validation)."""
    return normalize_uid(value) is not None


def uid_equals(a: Optional[str], b: Optional[str]) -> bool:
    """True if both inputs are valid UIDs with the same core."""
    core_a = normalize_uid(a)
    return core_a is not None and core_a == normalize_uid(b)
