import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, get_db, parse_object_id, update_document, utcnow
from offer_resolver import InvalidArgument, calculate_discount, get_final_price, is_valid_for_date
from pricing import offer_from_document, offer_to_document
from schemas import Discount, SpecialOffer
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/special-offers", tags=["special-offers"])


class SpecialOfferUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    terms: Optional[str] = None
    discount: Optional[Discount] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    minimum_stay: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    properties: Optional[List[str]] = None


def _payload(offer: SpecialOffer) -> Dict[str, Any]:
    return offer.model_dump(mode="json")


def _load(db: Database, id: str) -> SpecialOffer:
    doc = db["special_offer"].find_one({"_id": parse_object_id(id, "special offer ID")})
    if not doc:
        raise HTTPException(status_code=404, detail="Special offer not found")
    return offer_from_document(doc)


@router.get("/")
def list_offers(db: Database = Depends(get_db)):
    docs = db["special_offer"].find({}).sort("priority", DESCENDING)
    return {"success": True, "offers": [_payload(offer_from_document(d)) for d in docs]}


@router.get("/active")
def list_active_offers(db: Database = Depends(get_db)):
    now = utcnow()
    docs = db["special_offer"].find({
        "is_active": True,
        "start_date": {"$lte": now},
        "end_date": {"$gte": now},
    }).sort("priority", DESCENDING)
    return {"success": True, "offers": [_payload(offer_from_document(d)) for d in docs]}


@router.get("/{id}")
def get_offer(id: str, db: Database = Depends(get_db)):
    return {"success": True, "offer": _payload(_load(db, id))}


@router.get("/{id}/preview")
def preview_offer(
    id: str,
    price: float = Query(..., description="Base price to discount"),
    at: Optional[datetime] = Query(None, description="Instant to check validity at, defaults to now"),
    db: Database = Depends(get_db),
):
    offer = _load(db, id)
    try:
        discount = calculate_discount(offer, price)
        final_price = get_final_price(offer, price)
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "price": price,
        "discount": float(discount),
        "final_price": float(final_price),
        "is_valid": is_valid_for_date(offer, at or utcnow()),
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_offer(
    payload: SpecialOffer,
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    oid = create_document("special_offer", offer_to_document(payload), database=db)
    logger.info("Special offer %s created by %s", oid, admin["_id"])
    return {
        "success": True,
        "message": "Special offer created successfully",
        "offer": _payload(payload.model_copy(update={"id": oid})),
    }


@router.put("/{id}")
def update_offer(
    id: str,
    payload: SpecialOfferUpdate,
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    current = _load(db, id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    merged = current.model_dump()
    merged.update(changes)
    try:
        updated = SpecialOffer(**merged)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail="; ".join(err["msg"] for err in e.errors()))

    update_document("special_offer", parse_object_id(id), offer_to_document(updated), database=db)
    return {"success": True, "message": "Special offer updated successfully", "offer": _payload(updated)}


@router.delete("/{id}")
def delete_offer(
    id: str,
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    result = db["special_offer"].delete_one({"_id": parse_object_id(id, "special offer ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Special offer not found")
    return {"success": True, "message": "Special offer deleted successfully"}


@router.patch("/{id}/toggle-status")
def toggle_offer_status(
    id: str,
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    offer = _load(db, id)
    is_active = not offer.is_active
    update_document("special_offer", parse_object_id(id), {"is_active": is_active}, database=db)
    return {
        "success": True,
        "message": f"Special offer {'activated' if is_active else 'deactivated'} successfully",
        "is_active": is_active,
    }
