from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pymongo.database import Database

from config import Settings, get_settings
from database import create_document, get_db, get_documents, parse_object_id, serialize, update_document
from schemas import Category
from uploads import save_optional_upload

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/")
def list_categories(db: Database = Depends(get_db)):
    return get_documents("category", database=db)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_category(
    name: str = Form(...),
    icon: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not name.strip():
        raise HTTPException(status_code=400, detail="Name is required")
    if icon is None or not icon.filename:
        raise HTTPException(status_code=400, detail="Icon is required")

    category = Category(name=name.strip(), icon=save_optional_upload(icon, settings))
    cid = create_document("category", category, database=db)
    return serialize(db["category"].find_one({"_id": parse_object_id(cid)}))


@router.put("/{id}")
def update_category(
    id: str,
    name: Optional[str] = Form(None),
    icon: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    oid = parse_object_id(id, "category ID")
    if not db["category"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Category not found")

    changes = {}
    if name and name.strip():
        changes["name"] = name.strip()
    path = save_optional_upload(icon, settings)
    if path:
        changes["icon"] = path
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    category = update_document("category", oid, changes, database=db)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return serialize(category)


@router.delete("/{id}")
def delete_category(id: str, db: Database = Depends(get_db)):
    result = db["category"].delete_one({"_id": parse_object_id(id, "category ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully"}
