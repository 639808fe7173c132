"""
EMI (equated monthly instalment) calculator.

    r   = annual_rate / 12 / 100
    EMI = P * r * (1 + r)^n / ((1 + r)^n - 1)      (r > 0)
    EMI = P / n                                    (r == 0)

The schedule is a real amortisation: each month the interest is charged
on the outstanding balance and the rest of the instalment repays principal.
Only the first ``SCHEDULE_MONTHS`` rows are returned.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List

from src.core.shared.exceptions import ValidationError


SCHEDULE_MONTHS = 12
MAX_TENURE_MONTHS = 600

_CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AmortisationRow:
    month: int
    emi: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "emi": str(self.emi),
            "principal": str(self.principal),
            "interest": str(self.interest),
            "balance": str(self.balance),
        }


@dataclass(frozen=True)
class EMIQuote:
    principal: Decimal
    annual_rate: Decimal
    tenure_months: int
    monthly_emi: Decimal
    total_amount: Decimal
    total_interest: Decimal
    schedule: List[AmortisationRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal": str(self.principal),
            "annual_rate": str(self.annual_rate),
            "tenure_months": self.tenure_months,
            "monthly_emi": str(self.monthly_emi),
            "total_amount": str(self.total_amount),
            "total_interest": str(self.total_interest),
            "schedule": [row.to_dict() for row in self.schedule],
        }


def _to_decimal(value: Any, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid {name}: {value}", field=name)
    if not result.is_finite():
        raise ValidationError(f"Invalid {name}: {value}", field=name)
    return result


def calculate_emi(principal: Any, annual_rate: Any, tenure_months: Any) -> EMIQuote:
    """
    Quote a loan repaid in equal monthly instalments.

    Args:
        principal: Loan amount (> 0)
        annual_rate: Yearly interest in percent (>= 0)
        tenure_months: Number of instalments (1..600)

    Raises:
        ValidationError: If any argument is out of range
    """
    p = _to_decimal(principal, "principal")
    rate = _to_decimal(annual_rate, "rate")
    try:
        n = int(tenure_months)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid tenure: {tenure_months}", field="tenure")

    if p <= 0:
        raise ValidationError("Principal must be positive", field="principal")
    if rate < 0:
        raise ValidationError("Rate cannot be negative", field="rate")
    if not 1 <= n <= MAX_TENURE_MONTHS:
        raise ValidationError(
            f"Tenure must be between 1 and {MAX_TENURE_MONTHS} months", field="tenure"
        )

    monthly_rate = rate / Decimal(1200)
    if monthly_rate == 0:
        emi = p / n
    else:
        growth = (1 + monthly_rate) ** n
        emi = p * monthly_rate * growth / (growth - 1)
    emi = _money(emi)

    schedule: List[AmortisationRow] = []
    balance = p
    for month in range(1, min(n, SCHEDULE_MONTHS) + 1):
        interest = _money(balance * monthly_rate)
        principal_part = emi - interest
        if month == n:
            # last instalment clears rounding drift
            principal_part = balance
        balance = max(balance - principal_part, Decimal("0"))
        schedule.append(
            AmortisationRow(
                month=month,
                emi=_money(principal_part + interest),
                principal=_money(principal_part),
                interest=interest,
                balance=_money(balance),
            )
        )

    # zero rate repays exactly the principal
    total_amount = _money(emi * n) if monthly_rate else _money(p)
    return EMIQuote(
        principal=_money(p),
        annual_rate=rate,
        tenure_months=n,
        monthly_emi=emi,
        total_amount=total_amount,
        total_interest=_money(total_amount - p),
        schedule=schedule,
    )
