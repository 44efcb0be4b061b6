"""
exit_engines.notice_period -- Notice-period shortfall recovery.

Pure function of (required days, served days, daily-equivalent pay) ->
recovery amount.  Served >= required recovers nothing; otherwise the
shortfall days are charged at the daily-equivalent pay.  Negative inputs
are a validation error and are never clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from exit_engines.tracer import traced_engine
from exit_kernel.db.types import ZERO, round_money
from exit_kernel.exceptions import FieldError, ValidationError

DEFAULT_DAILY_PAY_DIVISOR = Decimal("30")


@dataclass(frozen=True)
class NoticeShortfall:
    required_days: int
    served_days: int
    shortfall_days: int
    daily_pay: Decimal
    recovery_amount: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "required_days": self.required_days,
            "served_days": self.served_days,
            "shortfall_days": self.shortfall_days,
            "daily_pay": self.daily_pay,
            "recovery_amount": self.recovery_amount,
        }


def daily_equivalent_pay(monthly_gross: Decimal, divisor: Decimal = DEFAULT_DAILY_PAY_DIVISOR) -> Decimal:
    """Unrounded daily pay; rounding happens once, on the recovery amount."""
    if divisor <= ZERO:
        raise ValidationError.single("daily_pay_divisor", "must be positive")
    if monthly_gross < ZERO:
        raise ValidationError.single("monthly_gross", "must be non-negative")
    return monthly_gross / divisor


@traced_engine("notice_period", "1.0", fingerprint_fields=("required_days", "served_days", "daily_pay"))
def evaluate_notice_shortfall(*, required_days: int, served_days: int, daily_pay: Decimal) -> NoticeShortfall:
    """
    Compute the recovery owed for unserved notice.

    Raises:
        ValidationError: If any input is negative.
    """
    errors: list[FieldError] = []
    if required_days < 0:
        errors.append(FieldError("notice_period_required_days", "must be non-negative"))
    if served_days < 0:
        errors.append(FieldError("notice_period_served_days", "must be non-negative"))
    if daily_pay < ZERO:
        errors.append(FieldError("daily_pay", "must be non-negative"))
    if errors:
        raise ValidationError(errors)

    shortfall = max(required_days - served_days, 0)
    recovery = round_money(daily_pay * shortfall) if shortfall else round_money(ZERO)

    return NoticeShortfall(
        required_days=required_days,
        served_days=served_days,
        shortfall_days=shortfall,
        daily_pay=daily_pay,
        recovery_amount=recovery,
    )
