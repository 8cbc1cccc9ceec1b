import logging
import math
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field
from pymongo import DESCENDING
from pymongo.database import Database

from config import Settings, get_settings
from database import create_document, get_db, parse_object_id, serialize, update_document, utcnow
from schemas import Capacity, Location, Property, Review
from security import get_current_user, get_optional_user, require_host
from uploads import save_uploads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"])

TRENDING_WINDOW_DAYS = 30
COUNTED_STATUSES = ["confirmed", "completed"]


class PropertyCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., ge=0)
    property_type: str = "apartment"
    category: Optional[str] = None
    location: Location
    capacity: Capacity
    amenities: List[str] = []
    images: List[str] = []
    is_available: bool = True


class PropertyUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    property_type: Optional[str] = None
    category: Optional[str] = None
    location: Optional[Location] = None
    capacity: Optional[Capacity] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    is_available: Optional[bool] = None


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


# ------- Helpers -------

def _with_hosts(db: Database, properties: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    oids = [ObjectId(p["host_id"]) for p in properties if ObjectId.is_valid(p.get("host_id"))]
    hosts = {}
    if oids:
        for u in db["user"].find({"_id": {"$in": oids}}):
            hosts[str(u["_id"])] = {"_id": str(u["_id"]), "name": u.get("name"), "avatar_url": u.get("avatar_url")}
    for p in properties:
        serialize(p)
        p["host"] = hosts.get(p.get("host_id"))
    return properties


def _get_property(db: Database, id: str) -> Dict[str, Any]:
    prop = db["property"].find_one({"_id": parse_object_id(id, "property ID")})
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


def _owned_property(db: Database, id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    prop = _get_property(db, id)
    if prop.get("host_id") != str(user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized")
    return prop


def _booking_counts(db: Database, match: Dict[str, Any]) -> List[Dict[str, Any]]:
    pipeline = [
        {"$match": match},
        {"$group": {"_id": "$property_id", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ]
    return list(db["booking"].aggregate(pipeline))


def _rank_properties(db: Database, counts: List[Dict[str, Any]], limit: int, count_field: str):
    by_id = {c["_id"]: c["count"] for c in counts if c.get("_id")}
    if not by_id:
        return []
    oids = [parse_object_id(pid) for pid in by_id]
    props = list(db["property"].find({"_id": {"$in": oids}, "is_available": True}))
    for p in props:
        p[count_field] = by_id[str(p["_id"])]
    props.sort(key=lambda p: p[count_field], reverse=True)
    return _with_hosts(db, props[:limit])


# ------- Routes -------

@router.get("/trending")
def trending_properties(limit: int = Query(10, ge=1, le=100), db: Database = Depends(get_db)):
    now = utcnow()
    since = now - timedelta(days=TRENDING_WINDOW_DAYS)
    recent = _booking_counts(db, {
        "status": {"$in": COUNTED_STATUSES},
        "check_in": {"$gte": since, "$lte": now},
    })
    properties = _rank_properties(db, recent, limit, "recent_booking_count")
    if properties:
        return {
            "success": True,
            "properties": properties,
            "metadata": {"total_properties": len(properties), "period": f"Last {TRENDING_WINDOW_DAYS} days"},
        }

    logger.info("No bookings in the last %d days, falling back to all-time trending", TRENDING_WINDOW_DAYS)
    all_time = _booking_counts(db, {"status": {"$in": COUNTED_STATUSES}})
    properties = _rank_properties(db, all_time, limit, "total_booking_count")
    metadata = {"total_properties": len(properties), "period": f"Last {TRENDING_WINDOW_DAYS} days"}
    if properties:
        metadata["period"] = "All Time (fallback)"
        metadata["note"] = f"No bookings in last {TRENDING_WINDOW_DAYS} days, showing all-time trending properties"
    return {"success": True, "properties": properties, "metadata": metadata}


@router.get("/favorites")
def favorite_properties(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    oids = [parse_object_id(pid) for pid in user.get("favorites", [])]
    return _with_hosts(db, list(db["property"].find({"_id": {"$in": oids}})))


@router.get("/neighborhoods/list")
def list_neighborhoods(db: Database = Depends(get_db)):
    return sorted(n for n in db["property"].distinct("location.neighborhood") if n)


@router.get("/")
def list_properties(
    search: Optional[str] = None,
    neighborhood: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    guests: Optional[int] = None,
    property_type: Optional[str] = None,
    amenities: Optional[str] = Query(None, description="Comma-separated, all must match"),
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"is_available": True}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}]
    if neighborhood:
        query["location.neighborhood"] = neighborhood
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price
    if guests:
        query["capacity.guests"] = {"$gte": guests}
    if property_type:
        query["property_type"] = property_type
    if amenities:
        query["amenities"] = {"$all": [a.strip() for a in amenities.split(",") if a.strip()]}
    if category:
        query["category"] = category

    skip = (page - 1) * limit
    cursor = db["property"].find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
    properties = _with_hosts(db, list(cursor))
    total = db["property"].count_documents(query)

    return {
        "properties": properties,
        "pagination": {
            "current": page,
            "total": math.ceil(total / limit),
            "has_next": page * limit < total,
            "has_prev": page > 1,
        },
    }


@router.get("/{id}")
def get_property(
    id: str,
    db: Database = Depends(get_db),
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
):
    prop = _with_hosts(db, [_get_property(db, id)])[0]
    if user is not None:
        prop["is_favorite"] = prop["_id"] in user.get("favorites", [])
    return prop


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_property(
    payload: PropertyCreate,
    user: Dict[str, Any] = Depends(require_host),
    db: Database = Depends(get_db),
):
    prop = Property(host_id=str(user["_id"]), **payload.model_dump())
    pid = create_document("property", prop, database=db)
    logger.info("Property %s created by host %s", pid, user["_id"])
    return {"message": "Property created successfully", "property": get_property(pid, db, user)}


@router.put("/{id}")
def update_property(
    id: str,
    payload: PropertyUpdate,
    user: Dict[str, Any] = Depends(require_host),
    db: Database = Depends(get_db),
):
    prop = _owned_property(db, id, user)
    changes = payload.model_dump(exclude_unset=True)
    updated = update_document("property", prop["_id"], changes, database=db) if changes else prop
    return {"message": "Property updated successfully", "property": _with_hosts(db, [updated])[0]}


@router.delete("/{id}")
def delete_property(
    id: str,
    user: Dict[str, Any] = Depends(require_host),
    db: Database = Depends(get_db),
):
    prop = _owned_property(db, id, user)
    db["property"].delete_one({"_id": prop["_id"]})
    return {"message": "Property deleted successfully"}


@router.post("/{id}/images")
def upload_property_images(
    id: str,
    images: List[UploadFile] = File(...),
    user: Dict[str, Any] = Depends(require_host),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    prop = _owned_property(db, id, user)
    paths = save_uploads(images, settings)
    db["property"].update_one({"_id": prop["_id"]}, {"$push": {"images": {"$each": paths}}})
    return {"message": "Images uploaded successfully", "images": prop.get("images", []) + paths}


@router.post("/{id}/reviews")
def add_review(
    id: str,
    payload: ReviewRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    prop = _get_property(db, id)
    user_id = str(user["_id"])
    reviews = prop.get("reviews", [])
    if any(r.get("user_id") == user_id for r in reviews):
        raise HTTPException(status_code=400, detail="You have already reviewed this property")

    review = Review(user_id=user_id, rating=payload.rating, comment=payload.comment, created_at=utcnow())
    reviews.append(review.model_dump())
    rating = {
        "average": sum(r["rating"] for r in reviews) / len(reviews),
        "count": len(reviews),
    }
    updated = update_document("property", prop["_id"], {"reviews": reviews, "rating": rating}, database=db)
    return {"message": "Review added successfully", "property": serialize(updated)}


@router.post("/{id}/favorite")
def toggle_favorite(
    id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    prop = _get_property(db, id)
    property_id = str(prop["_id"])
    favorites = list(user.get("favorites", []))

    is_favorite = property_id in favorites
    if is_favorite:
        favorites = [f for f in favorites if f != property_id]
    else:
        favorites.append(property_id)
    update_document("user", user["_id"], {"favorites": favorites}, database=db)

    return {
        "message": "Removed from favorites" if is_favorite else "Added to favorites",
        "is_favorite": not is_favorite,
    }
