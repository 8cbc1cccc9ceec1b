"""
Special-offer resolution.

Pure functions over ``SpecialOffer`` values: whether an offer is live at an
instant, how much it takes off a price, and which offer wins for a
property. Nothing here touches the database; callers pass the candidate
offers in.

Rule: offers do NOT stack. One offer is applied, chosen by
  priority desc -> discount amount desc -> start_date asc
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Union

from schemas import FixedDiscount, PercentageDiscount, SpecialOffer

Number = Union[int, float, Decimal]

HUNDRED = Decimal(100)


class InvalidArgument(ValueError):
    """Negative or non-finite price, or a malformed discount definition."""


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(value))


def _price(base_price: Number) -> Decimal:
    price = to_decimal(base_price)
    if not price.is_finite():
        raise InvalidArgument(f"base_price must be a finite number, got {base_price}")
    if price < 0:
        raise InvalidArgument(f"base_price must be >= 0, got {base_price}")
    return price


def is_valid_for_date(offer: SpecialOffer, instant: datetime) -> bool:
    """True iff the offer is active and ``instant`` is inside [start_date, end_date]."""
    if not offer.is_active:
        return False
    return as_utc(offer.start_date) <= as_utc(instant) <= as_utc(offer.end_date)


def applies_to_property(offer: SpecialOffer, property_id: str) -> bool:
    return not offer.properties or str(property_id) in offer.properties


def calculate_discount(offer: SpecialOffer, base_price: Number) -> Decimal:
    """
    Discount the offer takes off ``base_price``, always within [0, base_price].

    Validity is not checked here; see ``is_valid_for_date``.
    """
    price = _price(base_price)
    discount = offer.discount

    if isinstance(discount, FixedDiscount):
        return min(to_decimal(discount.amount), price)

    if isinstance(discount, PercentageDiscount):
        percentage = to_decimal(discount.percentage)
        if not 0 <= percentage <= HUNDRED:
            raise InvalidArgument(f"percentage must be within [0, 100], got {discount.percentage}")
        amount = price * percentage / HUNDRED
        if discount.maximum_discount is not None:
            amount = min(amount, to_decimal(discount.maximum_discount))
        return amount

    raise InvalidArgument(f"Unknown discount type: {getattr(discount, 'type', discount)!r}")


def get_final_price(offer: SpecialOffer, base_price: Number) -> Decimal:
    price = _price(base_price)
    return price - calculate_discount(offer, price)


def select_best_offer(
    candidates: Iterable[SpecialOffer],
    property_id: str,
    instant: datetime,
    base_price: Number,
) -> Optional[SpecialOffer]:
    """
    Pick the single offer to apply to a stay, or None when nothing applies.

    Offers must be live at ``instant`` and either global or linked to
    ``property_id``.
    """
    price = _price(base_price)
    eligible = [
        offer for offer in candidates
        if is_valid_for_date(offer, instant) and applies_to_property(offer, property_id)
    ]
    if not eligible:
        return None

    return min(
        eligible,
        key=lambda offer: (
            -offer.priority,
            -calculate_discount(offer, price),
            as_utc(offer.start_date),
        ),
    )
