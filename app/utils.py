import re
from datetime import date

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_count(v, default: int = 1) -> int:
    """Read a location count the way the form does: leading integer or `default`.

    Blank, non-numeric and non-positive values all fall back to `default`.
    """
    if isinstance(v, bool):
        return default
    if isinstance(v, int):
        n = v
    elif isinstance(v, float):
        n = int(v)
    else:
        m = _LEADING_INT.match(str(v or ""))
        if not m:
            return default
        n = int(m.group(1))
    return n if n > 0 else default


def clamp_add_on_locations(value: int, max_locations: int) -> tuple[int, bool]:
    """Returns (clamped value, whether the requested value exceeded the limit)."""
    return min(value, max_locations), value > max_locations


def plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def fixed(v, digits: int = 2) -> str:
    try:
        return f"{float(v):.{digits}f}"
    except (TypeError, ValueError):
        return f"{0:.{digits}f}"


def to_float(v, default: float = 0.0) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def money(v):
    try:
        return f"${float(v):,.2f}"
    except (TypeError, ValueError):
        return "$0.00"


def today():
    return date.today()


def report_date_label(d: date | None = None) -> str:
    d = d or today()
    return f"{d:%A}, {d:%B} {d.day}, {d.year}"


def campaign_year_label(is_renewal: bool, renewal_year: int) -> str:
    if not is_renewal:
        return "1"
    return "4+" if renewal_year >= 4 else str(renewal_year)
