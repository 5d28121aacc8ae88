# storefront/routers/products.py
import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlmodel import Session

from storefront.core.auth import require_admin
from storefront.core.errors import ValidationFailed
from storefront.database import get_session
from storefront.models.product import ProductCategory
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.schemas.product import (
    ProductCreate,
    ProductDetail,
    ProductImageRead,
    ProductPage,
    ProductRead,
    ProductUpdate,
)
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo, ReviewRepository())


# -------- Public endpoints --------


@router.get("", response_model=ProductPage)
def search_products(
    session: Session = Depends(get_session),
    category: str | None = None,
    search: str | None = None,
    min_price: str | None = Query(default=None, alias="minPrice"),
    max_price: str | None = Query(default=None, alias="maxPrice"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    page: str | None = None,
    limit: str | None = None,
):
    """
    Search the catalog.

    - Public endpoint; inactive products are never listed.
    - Query values are parsed permissively: a price bound, page or limit
      that is not a number is ignored rather than rejected.
    - `minPrice` > `maxPrice` yields an empty page.
    """
    return service.search_products(
        session,
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/categories", response_model=list[ProductCategory])
def list_categories(session: Session = Depends(get_session)):
    """Categories that currently have at least one active product."""
    return service.list_categories(session)


@router.get("/{product_id}", response_model=ProductDetail)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Product detail: product fields, gallery and star distribution.
    """
    return service.get_product_detail(session, product_id)


@router.get("/{product_id}/related", response_model=list[ProductRead])
def list_related_products(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    limit: int = Query(default=8, ge=1, le=24),
):
    """Other active products from the same category, best rated first."""
    return service.list_related(session, product_id, limit=limit)


@router.get(
    "/{product_id}/images",
    response_model=list[ProductImageRead],
)
def list_product_images(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    List gallery images for a product (public).
    """
    return service.list_images(session, product_id)


# -------- Catalog maintenance (admin only) --------

admin_router = APIRouter(
    prefix="/products",
    tags=["Catalog admin"],
    dependencies=[Depends(require_admin)],
)


def _read_image(upload: UploadFile) -> tuple[str, bytes]:
    """(content_type, bytes) of an upload; the type is checked by the service."""
    if not upload.content_type:
        raise ValidationFailed(
            "missing_content_type", f"Missing content-type for {upload.filename or 'upload'}"
        )
    return upload.content_type, upload.file.read()


@admin_router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, session: Session = Depends(get_session)):
    """
    Add a product to the catalog. The slug is derived from the name
    unless given, and suffixed (-2, -3, ...) until unique.
    """
    return service.create_product(session, payload)


@admin_router.patch("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    """
    Partial update; works on inactive products too.
    Carts keep the price their items were added at.
    """
    return service.update_product(session, product_id, payload)


@admin_router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: uuid.UUID, session: Session = Depends(get_session)):
    """Remove a product with its images, reviews and cart lines."""
    service.delete_product(session, product_id)


@admin_router.post("/{product_id}/hero-image", response_model=ProductRead)
def upload_hero_image(
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """Replace the hero image (JPEG, PNG or WEBP, 5MB max)."""
    content_type, data = _read_image(file)
    return service.set_hero_image(
        session=session,
        product_id=product_id,
        content_type=content_type,
        file_bytes=data,
    )


@admin_router.post("/{product_id}/gallery", response_model=list[ProductImageRead])
def upload_gallery_images(
    product_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
):
    """Append images to the end of the gallery."""
    return service.add_gallery_images(
        session=session,
        product_id=product_id,
        files=[_read_image(f) for f in files],
    )


@admin_router.delete(
    "/{product_id}/gallery/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_gallery_image(
    product_id: uuid.UUID,
    image_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Remove one gallery image and its stored file."""
    service.remove_gallery_image(session, product_id, image_id)
