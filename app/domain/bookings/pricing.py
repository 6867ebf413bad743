"""
Booking price calculation

Pure functions only: no I/O and no clock, so the same inputs always give the
same breakdown.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...shared.exceptions import ValidationError
from ...shared.validators import validate_insurance_value, validate_positive_weight

BASE_RATES = {
    "standard": 250,
    "express": 450,
    "same_day": 750,
}

HEAVY_PACKAGE_THRESHOLD_KG = 5
HEAVY_PACKAGE_SURCHARGE = Decimal("0.5")  # 50% of the base cost
INSURANCE_RATE = Decimal("0.02")  # 2% of declared value
MINIMUM_INSURANCE_CHARGE = Decimal("50")


@dataclass(frozen=True)
class CostBreakdown:
    base_cost: float
    weight_charges: float
    insurance_charges: float
    total_cost: float


def price(
    service_type: str,
    weight: float,
    insurance: bool = False,
    insurance_value: Optional[float] = None,
) -> CostBreakdown:
    """
    Compute the cost breakdown for a booking.

    - base cost comes from BASE_RATES
    - packages heavier than 5 kg pay 50% of the base cost on top
    - insurance costs 2% of the declared value, at least 50
    - the total is rounded to a whole amount, halves rounding up
    """
    service_type = getattr(service_type, "value", service_type)
    if service_type not in BASE_RATES:
        raise ValidationError(
            f"Invalid serviceType: {service_type}. Must be one of: {', '.join(BASE_RATES)}",
            field="serviceType",
        )

    weight = validate_positive_weight(weight)
    insurance_value = validate_insurance_value(insurance_value)

    base_cost = Decimal(BASE_RATES[service_type])
    weight_charges = base_cost * HEAVY_PACKAGE_SURCHARGE if weight > HEAVY_PACKAGE_THRESHOLD_KG else Decimal("0")

    insurance_charges = Decimal("0")
    if insurance and insurance_value:
        insurance_charges = max(Decimal(str(insurance_value)) * INSURANCE_RATE, MINIMUM_INSURANCE_CHARGE)

    total = (base_cost + weight_charges + insurance_charges).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    return CostBreakdown(
        base_cost=float(base_cost),
        weight_charges=float(weight_charges),
        insurance_charges=float(insurance_charges),
        total_cost=float(total),
    )
