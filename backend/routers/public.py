from typing import List

from fastapi import APIRouter, HTTPException, Request, status

from content import get_page
from schemas import ContentPage

router = APIRouter()


@router.get("/")
def root():
    return {"message": "Kumaraguru MUN API is running"}


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/routes", response_model=List[str])
def list_routes(request: Request):
    paths = request.app.openapi().get("paths", {})
    return sorted(path for path in paths if path.startswith("/api"))


@router.get("/content/{slug}", response_model=ContentPage)
def get_content_page(slug: str):
    page = get_page(slug.strip().lower())
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    return page
