"""Plan pricing helpers: minor-unit conversion, order receipts and plan windows."""

import calendar
from datetime import datetime
from decimal import ROUND_HALF_UP
from decimal import Decimal

from vdr_api.enums import PlanType

PLAN_CURRENCY = "INR"


def to_minor_units(amount: float) -> int:
    """Rupees to paise, rounded half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def order_receipt(organization_id: str, now: datetime) -> str:
    """Receipt reference for a plan order; the gateway caps receipts at 40 characters."""
    timestamp = str(int(now.timestamp() * 1000))
    return f"org_{organization_id[:8]}_{timestamp[-10:]}"


def add_months(start: datetime, months: int) -> datetime:
    """Same day ``months`` later, clamped to the last day of a shorter month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def plan_end(plan_type: PlanType, start: datetime) -> datetime:
    return add_months(start, plan_type.months)
