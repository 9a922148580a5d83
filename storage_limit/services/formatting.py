import re

UNITS = ("B", "KB", "MB", "GB", "TB")
# Suffix letters accepted by parse_size, indexed by power of 1024.
SIZE_SUFFIXES = "bkmgtpezy"

_SIZE_RE = re.compile(r"^\s*(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>[a-z]*)\s*$", re.IGNORECASE)


def _trim_number(value: float, precision: int) -> str:
    text = f"{round(value, precision):.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_bytes(num_bytes: int | float, precision: int = 2) -> str:
    """Render a byte count with the largest unit that keeps the value above 1024.

    ``format_bytes(5 * 1024 * 1024)`` gives ``"5 MB"`` and
    ``format_bytes(1_000_000)`` gives ``"976.56 KB"``.
    """
    value = float(num_bytes)
    index = 0
    while value > 1024 and index < len(UNITS) - 1:
        value /= 1024
        index += 1
    return f"{_trim_number(value, precision)} {UNITS[index]}"


def format_percentage(percentage: float) -> str:
    return f"{percentage:.1f}%"


def parse_size(value: str) -> int:
    """Parse ``"64M"``, ``"1G"`` or ``"512"`` style size strings into bytes."""
    match = _SIZE_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid size value: {value!r}")
    amount = float(match.group("amount"))
    unit = match.group("unit").lower()
    if not unit:
        return round(amount)
    power = SIZE_SUFFIXES.find(unit[0])
    if power < 0:
        raise ValueError(f"Unsupported size unit: {unit!r}")
    return round(amount * 1024**power)
