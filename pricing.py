"""
Stay pricing: loads candidate special offers from MongoDB and runs them
through the offer resolver.
"""
import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pymongo.database import Database

from database import naive_utc
from offer_resolver import get_final_price, select_best_offer, to_decimal
from schemas import SpecialOffer

logger = logging.getLogger(__name__)


class PriceQuote(BaseModel):
    nights: int
    price_per_night: Decimal
    base_price: Decimal
    discount: Decimal
    total_price: Decimal
    offer: Optional[SpecialOffer] = None


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def offer_from_document(doc: Dict[str, Any]) -> SpecialOffer:
    data = {k: v for k, v in doc.items() if k not in ("_id", "created_at", "updated_at")}
    return SpecialOffer(id=str(doc["_id"]), **data)


def offer_to_document(offer: SpecialOffer) -> Dict[str, Any]:
    data = offer.model_dump(exclude={"id"})
    data["start_date"] = naive_utc(offer.start_date)
    data["end_date"] = naive_utc(offer.end_date)
    return data


def find_candidate_offers(db: Database, property_id: str, instant: datetime) -> List[SpecialOffer]:
    """Active offers whose window covers ``instant`` and that are global or linked to the property."""
    when = naive_utc(instant)
    query = {
        "is_active": True,
        "start_date": {"$lte": when},
        "end_date": {"$gte": when},
        "$or": [
            {"properties": {"$exists": False}},
            {"properties": {"$size": 0}},
            {"properties": property_id},
        ],
    }
    return [offer_from_document(d) for d in db["special_offer"].find(query)]


def quote_stay(db: Database, property_doc: Dict[str, Any], check_in: date, check_out: date) -> PriceQuote:
    """
    Price a stay at a property, applying the best special offer.

    Offers whose minimum stay exceeds the number of nights are dropped
    before selection. Offer validity is checked at check-in.
    """
    nights = (check_out - check_in).days
    if nights <= 0:
        raise ValueError("End date must be after start date")

    property_id = str(property_doc["_id"])
    price_per_night = to_decimal(property_doc.get("price", 0))
    base_price = price_per_night * nights
    arrival = start_of_day(check_in)

    candidates = [
        offer for offer in find_candidate_offers(db, property_id, arrival)
        if offer.minimum_stay <= nights
    ]
    offer = select_best_offer(candidates, property_id, arrival, base_price)

    if offer is None:
        total = base_price
    else:
        total = get_final_price(offer, base_price)
        logger.info("Applied offer %s to property %s: %s -> %s", offer.id, property_id, base_price, total)

    return PriceQuote(
        nights=nights,
        price_per_night=price_per_night,
        base_price=base_price,
        discount=base_price - total,
        total_price=total,
        offer=offer,
    )
