"""
Text normalization for untrusted client fields.

Truncation happens before stripping, so a stripped value can be shorter
than the field limit but never longer. Removing characters can't create
new denylisted ones, which keeps sanitize() idempotent.
"""

import math
import re
from typing import Any

MAX_SESSION_ID = 50
MAX_USER_AGENT = 300
MAX_SCREEN_SIZE = 20
MAX_REFERRER = 200
MAX_MODE = 20
MAX_SYMBOL = 20
MAX_SYMBOLS = 18

# Angle brackets, quotes, ampersand, backslash, ASCII control characters
_DENYLIST = re.compile(r"[<>'\"&\\\x00-\x1f\x7f]")

# repr writes 1e-07 where String() writes 1e-7
_EXPONENT = re.compile(r"e([+-])0*(\d)")


def sanitize(value: Any, max_length: int = 500) -> str:
    """Truncate to max_length, then strip denylisted characters. Non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return _DENYLIST.sub("", value[:max_length])


def to_display_string(value: Any) -> str:
    """
    Stringify a decoded JSON value the way a browser's String() would.

    7.0 -> "7", True -> "true", None -> "null", [1, 2] -> "1,2",
    and any object -> "[object Object]".
    """
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _EXPONENT.sub(r"e\1\2", repr(value))
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else to_display_string(item) for item in value)
    return "[object Object]"


def sanitize_symbols(value: Any) -> tuple[str, ...]:
    """Element-wise sanitize a symbol sequence, keeping at most 18 entries"""
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(
        sanitize(to_display_string(symbol), MAX_SYMBOL)
        for symbol in value[:MAX_SYMBOLS]
    )
