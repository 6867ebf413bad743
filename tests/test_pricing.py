"""Unit tests for booking pricing and identifier generation"""

import re
from datetime import datetime

import pytest

from app.domain.bookings.identifiers import generate_booking_number, generate_tracking_number
from app.domain.bookings.pricing import BASE_RATES, price
from app.shared.exceptions import ValidationError


class TestPrice:
    """Tests for the cost breakdown."""

    def test_standard_heavy_insured_scenario(self):
        """Standard, 10 kg, insured for 1000 → 250 + 125 + 50 = 425."""
        costs = price("standard", 10, insurance=True, insurance_value=1000)

        assert costs.base_cost == 250
        assert costs.weight_charges == 125
        assert costs.insurance_charges == 50
        assert costs.total_cost == 425

    @pytest.mark.parametrize("service_type", sorted(BASE_RATES))
    @pytest.mark.parametrize("weight", [0.1, 1, 5])
    def test_no_weight_charge_up_to_five_kg(self, service_type, weight):
        costs = price(service_type, weight)
        assert costs.weight_charges == 0
        assert costs.base_cost == BASE_RATES[service_type]

    @pytest.mark.parametrize("service_type", sorted(BASE_RATES))
    @pytest.mark.parametrize("weight", [5.01, 12, 80])
    def test_heavy_packages_pay_half_the_base(self, service_type, weight):
        costs = price(service_type, weight)
        assert costs.weight_charges == costs.base_cost * 0.5

    def test_insurance_is_two_percent_of_value(self):
        costs = price("express", 2, insurance=True, insurance_value=10000)
        assert costs.insurance_charges == 200
        assert costs.total_cost == 650

    def test_insurance_has_a_minimum_charge(self):
        costs = price("standard", 1, insurance=True, insurance_value=100)
        assert costs.insurance_charges == 50

    def test_insurance_ignored_without_flag(self):
        costs = price("standard", 1, insurance=False, insurance_value=5000)
        assert costs.insurance_charges == 0
        assert costs.total_cost == 250

    def test_insurance_flag_without_value_charges_nothing(self):
        costs = price("same_day", 1, insurance=True, insurance_value=None)
        assert costs.insurance_charges == 0
        assert costs.total_cost == 750

    def test_total_rounds_half_up(self):
        # 250 + 2512.5 * 0.02 = 250 + 50.25 → 300
        assert price("standard", 1, insurance=True, insurance_value=2512.5).total_cost == 300
        # 250 + 2525 * 0.02 = 250 + 50.5 → 301
        assert price("standard", 1, insurance=True, insurance_value=2525).total_cost == 301

    def test_total_matches_rounded_sum(self):
        costs = price("express", 7.5, insurance=True, insurance_value=3333)
        expected = int(costs.base_cost + costs.weight_charges + costs.insurance_charges + 0.5)
        assert costs.total_cost == expected

    def test_unknown_service_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            price("overnight", 1)
        assert exc_info.value.context["field"] == "serviceType"

    @pytest.mark.parametrize("weight", [float("nan"), float("inf"), 0, -1])
    def test_invalid_weight_rejected(self, weight):
        with pytest.raises(ValidationError) as exc_info:
            price("standard", weight)
        assert exc_info.value.context["field"] == "weight"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), -10])
    def test_invalid_insurance_value_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            price("standard", 1, insurance=True, insurance_value=value)
        assert exc_info.value.context["field"] == "insuranceValue"


class TestIdentifiers:
    """Tests for booking and tracking number formats."""

    def test_booking_number_format(self):
        number = generate_booking_number(datetime(2024, 3, 15, 12, 0))
        assert re.fullmatch(r"CB-20240315-\d{4}", number)

    def test_tracking_number_format(self):
        now = datetime(2024, 3, 15, 12, 0)
        number = generate_tracking_number(now)
        millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
        assert re.fullmatch(rf"CPP{millis}\d{{3}}", number)
