import logging
from datetime import date, timedelta
from typing import Any, Dict, Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, get_db, naive_utc, parse_object_id, serialize, update_document
from notifier import EmailNotifier, get_notifier
from offer_resolver import InvalidArgument
from pricing import PriceQuote, quote_stay, start_of_day
from schemas import Booking
from security import get_current_user, require_host

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])

# terminal states, no further status changes
FINAL_STATUSES = ("cancelled", "completed")


# ------- Request models -------
class AvailabilityRequest(BaseModel):
    property_id: str
    start_date: date
    end_date: date


class QuoteRequest(BaseModel):
    property_id: str
    check_in: date
    check_out: date


class CreateBookingRequest(QuoteRequest):
    guests: int = Field(..., ge=1)
    payment_method: str = "cash"
    special_requests: Optional[str] = None


class StatusUpdate(BaseModel):
    status: Literal["confirmed", "cancelled", "completed"]


# ------- Helpers -------
def daterange(start_date: date, end_date: date):
    for n in range(int((end_date - start_date).days)):
        yield start_date + timedelta(n)


def _day(value) -> date:
    return value.date() if hasattr(value, "date") else date.fromisoformat(value)


def _overlap_query(property_id: str, start: date, end: date) -> Dict[str, Any]:
    return {
        "property_id": property_id,
        "check_in": {"$lt": naive_utc(start_of_day(end))},
        "check_out": {"$gt": naive_utc(start_of_day(start))},
        "status": {"$ne": "cancelled"},
    }


def _quote_payload(quote: PriceQuote) -> Dict[str, Any]:
    return {
        "nights": quote.nights,
        "price_per_night": float(quote.price_per_night),
        "base_price": float(quote.base_price),
        "discount": float(quote.discount),
        "total_price": float(quote.total_price),
        "special_offer": quote.offer.model_dump(mode="json") if quote.offer else None,
    }


def _priced(db: Database, prop: Dict[str, Any], check_in: date, check_out: date) -> PriceQuote:
    try:
        return quote_stay(db, prop, check_in, check_out)
    except (InvalidArgument, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


def _load_property(db: Database, property_id: str) -> Dict[str, Any]:
    prop = db["property"].find_one({"_id": parse_object_id(property_id, "property ID")})
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


# ------- Routes -------
@router.post("/availability")
def check_availability(req: AvailabilityRequest, db: Database = Depends(get_db)):
    _load_property(db, req.property_id)
    bookings = db["booking"].find(_overlap_query(req.property_id, req.start_date, req.end_date))

    unavailable = set()
    for b in bookings:
        for d in daterange(_day(b["check_in"]), _day(b["check_out"])):
            unavailable.add(d.isoformat())

    days = []
    for d in daterange(req.start_date, req.end_date):
        days.append({
            "date": d.isoformat(),
            "available": d.isoformat() not in unavailable
        })
    return {"days": days}


@router.post("/quote")
def quote(req: QuoteRequest, db: Database = Depends(get_db)):
    prop = _load_property(db, req.property_id)
    return _quote_payload(_priced(db, prop, req.check_in, req.check_out))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_booking(
    req: CreateBookingRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    prop = _load_property(db, req.property_id)
    if not prop.get("is_available", True):
        raise HTTPException(status_code=400, detail="Property is not available for booking")
    if req.check_out <= req.check_in:
        raise HTTPException(status_code=400, detail="End date must be after start date")

    max_guests = (prop.get("capacity") or {}).get("guests")
    if max_guests and req.guests > max_guests:
        raise HTTPException(status_code=400, detail=f"This property accepts at most {max_guests} guests")

    if db["booking"].find_one(_overlap_query(req.property_id, req.check_in, req.check_out)):
        raise HTTPException(status_code=400, detail="Selected dates are no longer available")

    price = _priced(db, prop, req.check_in, req.check_out)

    booking = Booking(
        guest_id=str(user["_id"]),
        property_id=req.property_id,
        check_in=naive_utc(start_of_day(req.check_in)),
        check_out=naive_utc(start_of_day(req.check_out)),
        guests=req.guests,
        base_price=float(price.base_price),
        discount=float(price.discount),
        total_price=float(price.total_price),
        special_offer_id=price.offer.id if price.offer else None,
        payment_method=req.payment_method,
        special_requests=req.special_requests,
        status="pending",
    )
    bid = create_document("booking", booking, database=db)
    created = db["booking"].find_one({"_id": parse_object_id(bid)})
    logger.info("Booking %s created for property %s (total %s)", bid, req.property_id, booking.total_price)

    notifier.send_booking_confirmation_to_guest(created, user, prop)
    host_id = prop.get("host_id")
    host = db["user"].find_one({"_id": ObjectId(host_id)}) if ObjectId.is_valid(host_id) else None
    if host:
        notifier.send_booking_notification_to_host(created, host, prop, user)

    return {"ok": True, "booking": serialize(created), "quote": _quote_payload(price)}


@router.get("/me")
def my_bookings(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    items = db["booking"].find({"guest_id": str(user["_id"])}).sort("created_at", DESCENDING)
    return {"items": [serialize(it) for it in items]}


@router.get("/host")
def host_bookings(user: Dict[str, Any] = Depends(require_host), db: Database = Depends(get_db)):
    property_ids = [str(p["_id"]) for p in db["property"].find({"host_id": str(user["_id"])}, {"_id": 1})]
    items = db["booking"].find({"property_id": {"$in": property_ids}}).sort("created_at", DESCENDING)
    return {"items": [serialize(it) for it in items]}


@router.patch("/{id}/status")
def update_booking_status(
    id: str,
    payload: StatusUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    booking = db["booking"].find_one({"_id": parse_object_id(id, "booking ID")})
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    prop = _load_property(db, booking["property_id"])

    user_id = str(user["_id"])
    is_host = prop.get("host_id") == user_id
    is_guest = booking["guest_id"] == user_id
    if not is_host and not (is_guest and payload.status == "cancelled"):
        raise HTTPException(status_code=403, detail="Not authorized")

    current = booking.get("status", "pending")
    if current in FINAL_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot change the status of a {current} booking")

    updated = update_document("booking", booking["_id"], {"status": payload.status}, database=db)

    guest = user if is_guest else db["user"].find_one({"_id": parse_object_id(booking["guest_id"])})
    if guest:
        notifier.send_booking_status_update(updated, guest, prop, payload.status)
    return {"ok": True, "booking": serialize(updated)}
