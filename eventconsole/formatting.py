from typing import Union

Number = Union[int, float]

_COUNT_STEPS = (
    (10_000_000, "Cr"),
    (100_000, "L"),
    (1_000, "K"),
)
_INTRADAY_SELECTS = {"15m", "1h", "6h", "24h"}


def format_count(value: Number) -> str:
    """Compact count label in the lakh/crore notation used on the dashboards."""
    for step, suffix in _COUNT_STEPS:
        if value >= step:
            return f"{value / step:.2f} {suffix}"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def axis_time_format(period: str, period_select: str = "custom") -> str:
    if period == "seconds":
        return "%H:%M:%S"
    if period == "days":
        return "%d %b"
    if period_select in _INTRADAY_SELECTS:
        return "%H:%M"
    return "%d %b %H:%M"
