"""Normalization of Bitable field values.

Bitable returns the same logical field in several shapes depending on the
column type: plain strings and numbers, arrays of tagged objects (people,
multi-select, lookups), attachment descriptors and linked-record references.
These helpers flatten them into the plain text, money and date strings that
appear on the printed contract.
"""

import math
import re
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from zoneinfo import ZoneInfo

SHANGHAI = ZoneInfo("Asia/Shanghai")

# Values above this are epoch milliseconds, below it epoch seconds
MS_EPOCH_THRESHOLD = 10_000_000_000

_MONEY_NOISE = re.compile(r"[,\s￥¥]")
_TRAILING_ZERO_FRACTION = re.compile(r"\.0+$")
_YMD = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _number_to_str(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _object_text(obj: Dict[str, Any]) -> str:
    """Pick the display text of a tagged object: text_arr > text > name > value > timestamp."""
    text_arr = obj.get("text_arr")
    if isinstance(text_arr, list):
        return "".join("" if t is None else str(t) for t in text_arr)
    if isinstance(obj.get("text"), str):
        return obj["text"]
    if isinstance(obj.get("name"), str):
        return obj["name"]
    value = obj.get("value")
    if isinstance(value, str):
        return value
    if _is_number(value):
        return _number_to_str(value)
    if _is_number(obj.get("timestamp")):
        return _number_to_str(obj["timestamp"])
    return ""


def to_text(value: Any) -> str:
    """Convert any field value to display text. Never raises.

    Arrays are joined with a full-width comma after dropping empty parts.
    The result is always trimmed, so ``to_text(to_text(x)) == to_text(x)``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if _is_number(value):
        return _number_to_str(value)

    if isinstance(value, list):
        parts = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, str) or _is_number(item):
                part = item if isinstance(item, str) else _number_to_str(item)
            elif isinstance(item, dict):
                part = _object_text(item)
            else:
                part = ""
            if part:
                parts.append(part)
        return "，".join(parts).strip()

    if isinstance(value, dict):
        return _object_text(value).strip()

    return ""


def pick_field(fields: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Return the value of the first key present in ``fields``."""
    for key in keys:
        if key in fields:
            return fields[key]
    return None


def num(value: Any) -> float:
    """Lenient numeric parse; 0 for empty, unparseable or non-finite input."""
    if value is None:
        return 0
    if _is_number(value):
        return value if math.isfinite(value) else 0
    text = value if isinstance(value, str) else to_text(value)
    cleaned = _MONEY_NOISE.sub("", text)
    if not cleaned:
        return 0
    try:
        n = float(cleaned)
    except ValueError:
        return 0
    return n if math.isfinite(n) else 0


def fmt_money_with_comma(value: Any) -> str:
    """Thousands-grouped amount; two decimals only when the amount is fractional."""
    n = num(value)
    if not n:
        return ""
    if float(n).is_integer():
        return f"{int(n):,}"
    return f"{n:,.2f}"


def _epoch_to_cn_date(value: float) -> Optional[str]:
    ms = value if value > MS_EPOCH_THRESHOLD else value * 1000
    try:
        d = datetime.fromtimestamp(ms / 1000, tz=SHANGHAI)
    except (OverflowError, OSError, ValueError):
        return None
    return f"{d.year}年{d.month}月{d.day}日"


def fmt_date_cn(value: Any) -> str:
    """Format a date-like field value as ``YYYY年M月D日`` (Asia/Shanghai).

    Free text that does not look like a date (e.g. "收到定金后45天") is
    returned unchanged.
    """
    if _is_number(value) and math.isfinite(value):
        formatted = _epoch_to_cn_date(value)
        if formatted is not None:
            return formatted

    s = _TRAILING_ZERO_FRACTION.sub("", to_text(value)).strip()

    if re.fullmatch(r"\d{13}", s):
        return fmt_date_cn(int(s))
    if re.fullmatch(r"\d{10}", s):
        return fmt_date_cn(int(s) * 1000)

    m = _YMD.match(s)
    if m:
        return f"{m.group(1)}年{int(m.group(2))}月{int(m.group(3))}日"

    return s


def pick_file_token(value: Any) -> Optional[str]:
    """Find an attachment file token on a field value (dict or list of dicts)."""

    def token_of(obj: Any) -> Optional[str]:
        if not isinstance(obj, dict):
            return None
        token = obj.get("file_token") or obj.get("fileToken") or obj.get("token")
        if not token:
            token_list = obj.get("file_token_list")
            if isinstance(token_list, list) and token_list:
                token = token_list[0]
        return str(token) if token else None

    if not value:
        return None
    if isinstance(value, list):
        for item in value:
            token = token_of(item)
            if token:
                return token
        return None
    return token_of(value)
