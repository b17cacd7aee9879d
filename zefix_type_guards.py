"""
Predicates and reference tables for ZEFIX API payloads.

Responses are kept as decoded JSON; these helpers check their shape
before callers pick fields out of them.
"""

from typing import Any, Dict

SWISS_CANTONS = (
    "AG", "AI", "AR", "BE", "BL", "BS", "FR", "GE", "GL", "GR", "JU", "LU", "NE",
    "NW", "OW", "SG", "SH", "SO", "SZ", "TG", "TI", "UR", "VD", "VS", "ZG", "ZH",
)

ZEFIX_LANGUAGES = ("de", "fr", "it", "en")

FRENCH_CANTONS = {"FR", "GE", "JU", "NE", "VD", "VS"}
ITALIAN_CANTONS = {"TI"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_zefix_error(value: Any) -> bool:
    """Check if a value is a ZEFIX error response ({"error": {...}})."""
    return isinstance(value, dict) and isinstance(value.get("error"), dict)


def is_company(value: Any) -> bool:
    """Check if a value is a company object (short or full)."""
    return (
        isinstance(value, dict)
        and isinstance(value.get("uid"), str)
        and isinstance(value.get("name"), str)
    )


def is_company_full(value: Any) -> bool:
    """Check if a value is a full company object."""
    return is_company(value) and "address" in value and "purpose" in value


def is_legal_form(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and _is_int(value.get("id"))
        and isinstance(value.get("name"), str)
    )


def is_bfs_community(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("communityName"), str)
        and _is_int(value.get("bfsId"))
    )


def extract_error_message(error: Any) -> str:
    """
    Extract a human-readable message from an exception or error payload.

    Args:
        error: Exception, ZEFIX error response, string or message-bearing dict

    Returns:
        The best available message
    """
    if isinstance(error, BaseException):
        return str(error)

    if is_zefix_error(error):
        return error["error"].get("message") or "Unknown error"

    if isinstance(error, str):
        return error

    if isinstance(error, dict) and "message" in error:
        return str(error["message"])

    return "An unknown error occurred"


def is_active_company(company: Dict[str, Any]) -> bool:
    return company.get("status") == "ACTIVE"


def is_valid_canton(canton: str) -> bool:
    """Check if a string is a Swiss canton code (case-insensitive)."""
    return isinstance(canton, str) and canton.upper() in SWISS_CANTONS


def is_valid_language(language: str) -> bool:
    """Check if a language is supported by ZEFIX (case-insensitive)."""
    return isinstance(language, str) and language.lower() in ZEFIX_LANGUAGES


def get_default_language_for_canton(canton: str) -> str:
    """Default ZEFIX language for a canton: it for TI, fr for the Romandie, else de."""
    code = canton.upper()
    if code in ITALIAN_CANTONS:
        return "it"
    if code in FRENCH_CANTONS:
        return "fr"
    return "de"
