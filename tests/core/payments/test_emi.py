"""
Unit tests for the EMI calculator.
"""

from decimal import Decimal

import pytest

from src.core.payments.emi import MAX_TENURE_MONTHS, SCHEDULE_MONTHS, calculate_emi
from src.core.shared.exceptions import ValidationError


class TestCalculateEMI:

    def test_standard_home_loan(self):
        quote = calculate_emi("5000000", "8.5", 240)

        assert quote.monthly_emi.quantize(Decimal("1")) == Decimal("43391")
        assert quote.total_amount == quote.monthly_emi * 240
        assert quote.total_interest == quote.total_amount - Decimal("5000000.00")

    def test_schedule_is_limited_to_the_first_year(self):
        quote = calculate_emi(1000000, 9, 120)

        assert len(quote.schedule) == SCHEDULE_MONTHS
        assert [row.month for row in quote.schedule] == list(range(1, 13))

    def test_schedule_amortises(self):
        quote = calculate_emi(1000000, 12, 60)
        first, second = quote.schedule[0], quote.schedule[1]

        assert first.interest == Decimal("10000.00")
        assert first.principal + first.interest == quote.monthly_emi
        assert second.interest < first.interest
        assert second.balance < first.balance

    def test_short_loan_is_fully_repaid(self):
        quote = calculate_emi(12000, 10, 6)

        assert len(quote.schedule) == 6
        assert quote.schedule[-1].balance == Decimal("0.00")

    def test_zero_rate(self):
        quote = calculate_emi(120000, 0, 12)

        assert quote.monthly_emi == Decimal("10000.00")
        assert quote.total_interest == Decimal("0.00")
        assert quote.schedule[-1].balance == Decimal("0.00")

    def test_to_dict_serialises_decimals(self):
        data = calculate_emi(120000, 0, 12).to_dict()

        assert data["monthly_emi"] == "10000.00"
        assert data["tenure_months"] == 12
        assert data["schedule"][0]["month"] == 1

    @pytest.mark.parametrize("principal,rate,tenure,field_name", [
        (0, 8, 12, "principal"),
        (-1, 8, 12, "principal"),
        ("lots", 8, 12, "principal"),
        (1000, -1, 12, "rate"),
        (1000, "high", 12, "rate"),
        (1000, 8, 0, "tenure"),
        (1000, 8, MAX_TENURE_MONTHS + 1, "tenure"),
        (1000, 8, "ten", "tenure"),
    ])
    def test_invalid_arguments(self, principal, rate, tenure, field_name):
        with pytest.raises(ValidationError) as exc:
            calculate_emi(principal, rate, tenure)
        assert exc.value.field == field_name
