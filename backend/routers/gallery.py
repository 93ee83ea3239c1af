from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from database import get_db
from models import GalleryItem, GalleryItemType, User
from schemas import GalleryCreate, GalleryResponse, GalleryUpdate
from security import require_admin
from utils import IMAGE_CONTENT_TYPES, _delete_s3_object, _upload_to_s3, log_transaction

router = APIRouter()


def _get_item_or_404(db: Session, item_id: int) -> GalleryItem:
    item = db.query(GalleryItem).filter(GalleryItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gallery item not found")
    return item


@router.get("/gallery", response_model=List[GalleryResponse])
def list_gallery(
    category: Optional[str] = None,
    type: Optional[GalleryItemType] = None,
    db: Session = Depends(get_db),
):
    query = db.query(GalleryItem)
    if category and category.strip().lower() != "all":
        query = query.filter(GalleryItem.category == category.strip())
    if type:
        query = query.filter(GalleryItem.type == type)
    rows = query.order_by(GalleryItem.created_at.desc(), GalleryItem.id.desc()).all()
    return [GalleryResponse.model_validate(row) for row in rows]


@router.get("/gallery/categories", response_model=List[str])
def list_gallery_categories(db: Session = Depends(get_db)):
    rows = db.query(GalleryItem.category).distinct().order_by(GalleryItem.category.asc()).all()
    return [row[0] for row in rows if row[0]]


@router.post("/gallery/upload")
def upload_gallery_image(
    file: UploadFile = File(...),
    admin: User = Depends(require_admin),
):
    return {"url": _upload_to_s3(file, "gallery", allowed_types=IMAGE_CONTENT_TYPES)}


@router.post("/gallery", response_model=GalleryResponse, status_code=status.HTTP_201_CREATED)
def create_gallery_item(
    payload: GalleryCreate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = GalleryItem(**payload.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    log_transaction(db, admin, "GALLERY_ITEM_CREATED", {"gallery_item_id": item.id}, request)
    return GalleryResponse.model_validate(item)


@router.put("/gallery/{item_id}", response_model=GalleryResponse)
def update_gallery_item(
    item_id: int,
    payload: GalleryUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = _get_item_or_404(db, item_id)
    updates = payload.model_dump(exclude_unset=True)
    previous_image = item.image_url
    for field, value in updates.items():
        if field in ("title", "type", "category", "image_url") and value is None:
            continue
        setattr(item, field, value)
    if item.type == GalleryItemType.VIDEO and not item.video_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Video URL is required for video type")
    if item.type == GalleryItemType.IMAGE:
        item.video_url = None
    db.commit()
    db.refresh(item)
    if previous_image != item.image_url:
        _delete_s3_object(previous_image)
    log_transaction(db, admin, "GALLERY_ITEM_UPDATED", {"gallery_item_id": item.id}, request)
    return GalleryResponse.model_validate(item)


@router.delete("/gallery/{item_id}")
def delete_gallery_item(
    item_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = _get_item_or_404(db, item_id)
    image_url = item.image_url
    db.delete(item)
    db.commit()
    _delete_s3_object(image_url)
    log_transaction(db, admin, "GALLERY_ITEM_DELETED", {"gallery_item_id": item_id}, request)
    return {"message": "Gallery item deleted successfully"}
