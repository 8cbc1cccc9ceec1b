import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pymongo import DESCENDING
from pymongo.database import Database

from config import Settings, get_settings
from database import create_document, get_db, parse_object_id, serialize, update_document
from schemas import Banner
from uploads import save_optional_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/banners", tags=["banners"])


def _list(db: Database, query: dict):
    return [serialize(b) for b in db["banner"].find(query).sort("created_at", DESCENDING)]


@router.get("/")
def list_banners(db: Database = Depends(get_db)):
    return {"success": True, "banners": _list(db, {})}


@router.get("/active")
def list_active_banners(db: Database = Depends(get_db)):
    return {"success": True, "banners": _list(db, {"is_active": True})}


@router.get("/{id}")
def get_banner(id: str, db: Database = Depends(get_db)):
    banner = db["banner"].find_one({"_id": parse_object_id(id, "banner ID")})
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")
    return {"success": True, "banner": serialize(banner)}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_banner(
    title: Optional[str] = Form(None),
    cta_link: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not title or not title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    if len(title.strip()) > 100:
        raise HTTPException(status_code=400, detail="Title must be at most 100 characters")
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="Image is required")

    path = save_optional_upload(image, settings)
    banner = Banner(title=title, image=path, cta_link=cta_link or None)

    bid = create_document("banner", banner, database=db)
    logger.info("Banner %s created with image %s", bid, path)
    return {
        "success": True,
        "message": "Banner created successfully",
        "banner": serialize(db["banner"].find_one({"_id": parse_object_id(bid)})),
    }


@router.put("/{id}")
def update_banner(
    id: str,
    title: Optional[str] = Form(None),
    cta_link: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    oid = parse_object_id(id, "banner ID")
    if not db["banner"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Banner not found")

    changes = {}
    if title:
        title = title.strip()
        if len(title) > 100:
            raise HTTPException(status_code=400, detail="Title must be at most 100 characters")
        changes["title"] = title
    if cta_link is not None:
        changes["cta_link"] = cta_link.strip()
    path = save_optional_upload(image, settings)
    if path:
        changes["image"] = path

    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    banner = update_document("banner", oid, changes, database=db)
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")
    return {"success": True, "message": "Banner updated successfully", "banner": serialize(banner)}


@router.delete("/{id}")
def delete_banner(id: str, db: Database = Depends(get_db)):
    result = db["banner"].delete_one({"_id": parse_object_id(id, "banner ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Banner not found")
    return {"success": True, "message": "Banner deleted successfully"}


@router.patch("/{id}/toggle-status")
def toggle_banner_status(id: str, db: Database = Depends(get_db)):
    oid = parse_object_id(id, "banner ID")
    banner = db["banner"].find_one({"_id": oid})
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")

    is_active = not banner.get("is_active", True)
    update_document("banner", oid, {"is_active": is_active}, database=db)
    return {
        "success": True,
        "message": f"Banner {'activated' if is_active else 'deactivated'} successfully",
        "is_active": is_active,
    }
