# formatting.py
"""
Display formatting for the reports (es-BO conventions).

Report callers hand the composer finished strings; these helpers produce them.
Dates accept datetime/date/pandas.Timestamp. Missing values render as "N/A".
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

MONTHS_ES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)
WEEKDAYS_ES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")


def _missing(d: Any) -> bool:
    # NaT compares unequal to itself
    return d is None or d != d


def format_long_datetime(d: datetime) -> str:
    """'19 de octubre de 2026, 14:05'"""
    return f"{d.day} de {MONTHS_ES[d.month - 1]} de {d.year}, {d.hour:02d}:{d.minute:02d}"


def format_date(d: Optional[date], default: str = "N/A") -> str:
    """'19/10/2026'"""
    if _missing(d):
        return default
    return f"{d.day:02d}/{d.month:02d}/{d.year}"


def format_short_date(d: Optional[date], default: str = "N/A") -> str:
    """'19/10/26'"""
    if _missing(d):
        return default
    return f"{d.day:02d}/{d.month:02d}/{d.year % 100:02d}"


def format_day_month(d: Optional[date], default: str = "N/A") -> str:
    if _missing(d):
        return default
    return f"{d.day:02d}/{d.month:02d}"


def weekday_name(d: date) -> str:
    return WEEKDAYS_ES[d.weekday()]


def format_money(value: float) -> str:
    return f"Bs {value:.2f}"


def format_km_thousands(km: float) -> str:
    """Kilometres in thousands, '0' when there is nothing to show."""
    return f"{km / 1000:.0f}K" if km > 0 else "0"


def format_percent(part: float, total: float) -> str:
    if not total:
        return "0.0"
    return f"{part / total * 100:.1f}"


def clip(value: Any, n: int, default: str = "N/A") -> str:
    if _missing(value) or value == "":
        return default
    return str(value)[:n]
