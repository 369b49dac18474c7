"""
Qoyod ledger conventions.

- Amounts travel as decimal strings ("150.0"), never floats.
- Dates are civil dates in the ledger's local offset (UTC+3), YYYY-MM-DD.
- Generated references embed a millisecond timestamp.
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a ledger amount (str, int, float or Decimal). Returns None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def is_positive(value: Any) -> bool:
    number = to_decimal(value)
    return number is not None and number > 0


def amount_string(value: Any, default: str = "0.0") -> str:
    """Render an amount in the ledger's decimal-as-string form, keeping the caller's precision."""
    if value is None:
        return default
    text = str(value).strip()
    return text or default


class LedgerClock:
    """
    Wall clock pinned to the ledger's civil-time offset.

    `now` is injectable so workflows can be tested against a fixed instant.
    """

    def __init__(self, utc_offset_hours: int = 3, now: Optional[Callable[[], datetime]] = None):
        self.tz = timezone(timedelta(hours=utc_offset_hours))
        self._now = now or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._now().astimezone(self.tz)

    def today(self) -> str:
        return self.now().date().isoformat()

    def timestamp_ms(self) -> int:
        return int(self._now().timestamp() * 1000)

    def payment_reference(self) -> str:
        return f"PAY-{self.timestamp_ms()}"
