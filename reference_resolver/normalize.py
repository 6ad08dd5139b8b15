"""Cost Code Normalization Utilities.

Cost codes are typed by hand in several places (company templates, job
templates, imported budgets) and drift in formatting. Two codes are the
same reference when their normalized forms match. The normalization:
1. Converts to lowercase
2. Removes all whitespace
3. Keeps only digits and "."

Examples:
    "01-100 "   → "01100"
    "1.100 Lab" → "1.100"
    "Labor"     → ""
"""

import re

_NON_CODE_CHARS = re.compile(r"[^0-9.]")
_WHITESPACE = re.compile(r"\s+")


def normalize_code(code) -> str:
    """Normalize a cost code for lookup.

    Args:
        code: Raw cost code; None is treated as empty

    Returns:
        Normalized code string (may be empty)

    Examples:
        >>> normalize_code(" 01.100 ")
        '01.100'
        >>> normalize_code("02 - 200")
        '02200'
    """
    if code is None:
        return ""
    text = _WHITESPACE.sub("", str(code).lower())
    return _NON_CODE_CHARS.sub("", text)


def normalize_type_tag(type_tag) -> str:
    """Case-insensitive comparison key for a cost-code type tag."""
    if not type_tag:
        return ""
    return str(type_tag).strip().lower()
