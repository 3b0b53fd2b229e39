# pricing.py
import math
from dataclasses import dataclass

from errors import InvalidDiscountError
from models import DiscountType


@dataclass(frozen=True)
class DiscountResult:
    subtotal: float
    discount: float
    discount_type: DiscountType
    effective_discount: float
    total: float


def parse_discount_type(value) -> DiscountType:
    if isinstance(value, DiscountType):
        return value
    try:
        return DiscountType(value)
    except ValueError:
        raise InvalidDiscountError(f"Unknown discount type: {value!r}",
                                   details={"discount_type": value}) from None


def apply_discount(subtotal: float, discount: float = 0,
                   discount_type=DiscountType.PERCENTAGE) -> DiscountResult:
    """
    Apply a single percentage or fixed discount to subtotal.

    percentage: discount must be within 0..100.
    fixed: discount must be within 0..subtotal, so the total never goes negative.
    """
    discount_type = parse_discount_type(discount_type)
    discount = discount or 0
    if not math.isfinite(discount):
        raise InvalidDiscountError("Discount must be a finite number.",
                                   details={"discount": discount})
    if discount < 0:
        raise InvalidDiscountError("Discount cannot be negative.",
                                   details={"discount": discount})

    if discount_type is DiscountType.PERCENTAGE:
        if discount > 100:
            raise InvalidDiscountError("Percentage discount cannot exceed 100.",
                                       details={"discount": discount})
        effective = subtotal * discount / 100
    else:
        if discount > subtotal:
            raise InvalidDiscountError(
                f"Fixed discount {discount} exceeds subtotal {subtotal}.",
                details={"discount": discount, "subtotal": subtotal},
            )
        effective = discount

    effective = round(effective, 2)
    total = max(round(subtotal - effective, 2), 0)
    return DiscountResult(
        subtotal=round(subtotal, 2),
        discount=discount,
        discount_type=discount_type,
        effective_discount=effective,
        total=total,
    )
