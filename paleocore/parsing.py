from __future__ import annotations

import math
import re
from typing import Any, Optional

# Leading float prefix: "3.45", "-1e3", ".5", "120cm" -> 120
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def parse_number(value: Any, *, decimal_comma: bool = True) -> Optional[float]:
    """Parse a cell the lenient way a spreadsheet user expects.

    Numbers pass through (NaN/inf rejected).  Strings are stripped, the first
    ``,`` is read as a decimal separator when ``decimal_comma`` is set, and
    the longest leading float literal is taken.  Returns ``None`` when nothing
    numeric is found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        v = float(value)
        return v if math.isfinite(v) else None
    s = str(value).strip()
    if not s:
        return None
    if decimal_comma:
        s = s.replace(",", ".", 1)
    m = _FLOAT_PREFIX.match(s)
    if not m:
        return None
    v = float(m.group(0))
    return v if math.isfinite(v) else None


__all__ = ["parse_number"]
