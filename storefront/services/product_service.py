# storefront/services/product_service.py
import logging
import math
import re
import uuid
from typing import Iterable

from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.errors import (
    NotFound,
    PayloadTooLarge,
    ValidationFailed,
    product_not_found,
)
from storefront.core.storage_utils import (
    upload_to_storage,
    delete_public_url,
    generate_filename,
)
from storefront.models.product import Product, ProductCategory, ProductImage
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.schemas.common import PageInfo
from storefront.schemas.product import (
    ProductCreate,
    ProductDetail,
    ProductImageRead,
    ProductPage,
    ProductRead,
    ProductUpdate,
    RatingSummary,
)

logger = logging.getLogger(__name__)

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

# Accepted spellings of the sort keys
SORT_ALIASES: dict[str, str] = {
    "created_at": "created_at",
    "createdat": "created_at",
    "newest": "created_at",
    "price": "price",
    "rating": "rating",
    "ratings": "rating",
}

# Largest OFFSET sent to the database (signed 32-bit)
MAX_ROW_OFFSET = 2**31 - 1


# ----- Permissive query parsing -----
#
# Catalog query strings come straight from the storefront UI. A bound or
# page number that does not parse is treated as if it were absent, never
# as an error: the shopper gets the unfiltered / default view instead of
# a 4xx.


def parse_optional_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def parse_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def page_window(
    page: str | None,
    limit: str | None,
    default_size: int,
) -> tuple[int, int, int]:
    """
    Resolve raw page / limit values into (page_no, page_size, offset).

    page_no is at least 1 and page_size is clamped to [1, MAX_PAGE_SIZE].
    The offset is capped at MAX_ROW_OFFSET so an absurd page number
    reads as a page past the end instead of overflowing the database
    integer type.
    """
    page_no = max(parse_int(page, 1), 1)
    page_size = parse_int(limit, default_size)
    page_size = min(max(page_size, 1), get_settings().MAX_PAGE_SIZE)
    offset = min((page_no - 1) * page_size, MAX_ROW_OFFSET)
    return page_no, page_size, offset


def parse_category(raw: str | None) -> tuple[bool, ProductCategory | None]:
    """
    Returns (matchable, category).

    "all" / blank => (True, None): no filter.
    A value outside the enumeration => (False, None): nothing can match.
    """
    if raw is None or not raw.strip() or raw.strip().lower() == "all":
        return True, None
    value = raw.strip()
    for category in ProductCategory:
        if category.value.lower() == value.lower() or category.name.lower() == value.lower():
            return True, category
    return False, None


def parse_sort(sort_by: str | None, sort_order: str | None) -> tuple[str, bool]:
    key = SORT_ALIASES.get((sort_by or "").strip().lower())
    if key is None:
        return "created_at", True
    descending = (sort_order or "desc").strip().lower() != "asc"
    return key, descending


class ProductService:
    """
    Business logic for the product catalog.

    Responsibilities:
      - catalog search (filters, sort, pagination)
      - product detail with gallery and rating breakdown
      - slug generation & uniqueness
      - image upload/delete orchestration with Supabase
      - admin-only maintenance (enforced at router via require_admin)
    """

    def __init__(self, repo: ProductRepository, review_repo: ReviewRepository):
        self.repo = repo
        self.review_repo = review_repo

    # ----- Helpers -----

    @staticmethod
    def _slugify(raw: str) -> str:
        """
        Basic slugification:
          - lowercase
          - non-alphanumeric -> '-'
          - collapse multiple '-'
          - strip leading/trailing '-'
        """
        value = raw.strip().lower()
        value = re.sub(r"[^a-z0-9]+", "-", value)
        value = re.sub(r"-+", "-", value)
        value = value.strip("-")
        return value or "product"

    def _ensure_unique_slug(self, session: Session, base_slug: str) -> str:
        """
        Ensure slug is unique by appending -2, -3, ... if needed.
        """
        slug = base_slug
        i = 2
        while self.repo.get_by_slug(session, slug) is not None:
            slug = f"{base_slug}-{i}"
            i += 1
        return slug

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationFailed(
                "unsupported_image_type", "Unsupported image type. Allowed: JPEG, PNG, WEBP."
            )

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise PayloadTooLarge("image_too_large", "Image too large (max 5MB).")

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    # ----- Catalog (public) -----

    def search_products(
        self,
        session: Session,
        *,
        category: str | None = None,
        search: str | None = None,
        min_price: str | None = None,
        max_price: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
        page: str | None = None,
        limit: str | None = None,
    ) -> ProductPage:
        """
        One page of active products matching the given filters.

        All arguments are raw query-string values; see the parsing
        helpers above for how malformed values are treated.
        """
        page_no, page_size, offset = page_window(
            page, limit, get_settings().DEFAULT_PAGE_SIZE
        )

        matchable, category_value = parse_category(category)
        sort_key, descending = parse_sort(sort_by, sort_order)
        term = search.strip() if search else None

        categories = self.repo.list_categories(session)

        if not matchable:
            return ProductPage(
                products=[],
                pagination=PageInfo.build(page_no, page_size, 0),
                categories=categories,
            )

        products, total = self.repo.find(
            session,
            category=category_value,
            search=term or None,
            min_price=parse_optional_float(min_price),
            max_price=parse_optional_float(max_price),
            sort_by=sort_key,
            descending=descending,
            offset=offset,
            limit=page_size,
        )
        return ProductPage(
            products=[ProductRead.model_validate(p) for p in products],
            pagination=PageInfo.build(page_no, page_size, total),
            categories=categories,
        )

    def list_categories(self, session: Session) -> list[ProductCategory]:
        return self.repo.list_categories(session)

    def get_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product or (not product.is_active and not include_inactive):
            raise product_not_found()
        return product

    def rating_summary(self, session: Session, product: Product) -> RatingSummary:
        counts = self.review_repo.rating_counts(session, product.id)
        return RatingSummary(
            average=product.rating,
            count=product.review_count,
            distribution={star: counts.get(star, 0) for star in range(1, 6)},
        )

    def get_product_detail(self, session: Session, product_id: uuid.UUID) -> ProductDetail:
        product = self.get_product(session, product_id)
        images = self.repo.list_images_for_product(session, product.id)
        return ProductDetail(
            **ProductRead.model_validate(product).model_dump(),
            images=[ProductImageRead.model_validate(i) for i in images],
            rating_summary=self.rating_summary(session, product),
        )

    def list_related(
        self,
        session: Session,
        product_id: uuid.UUID,
        limit: int = 8,
    ) -> list[Product]:
        product = self.get_product(session, product_id)
        return self.repo.list_related(session, product, limit=limit)

    # ----- Catalog maintenance (admin) -----

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
    ) -> Product:
        """
        Create a new product with a unique slug.

        - If slug is provided => slugify & ensure unique.
        - Else => slugify from name & ensure unique.
        """
        base_slug = self._slugify(payload.slug or payload.name)
        slug = self._ensure_unique_slug(session, base_slug)

        product = Product(
            **payload.model_dump(exclude={"slug"}),
            slug=slug,
        )
        product = self.repo.create(session, product)
        logger.info("Created product %s (%s)", product.id, product.slug)
        return product

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update of a product.

        - If slug is changed, enforce uniqueness.
        - Existing cart entries keep the price they were added at.
        """
        product = self.get_product(session, product_id, include_inactive=True)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)

        new_slug = changes.pop("slug", None)
        if new_slug is not None:
            new_base_slug = self._slugify(new_slug)
            if new_base_slug != product.slug:
                product.slug = self._ensure_unique_slug(session, new_base_slug)

        for field, value in changes.items():
            setattr(product, field, value)

        return self.repo.update(session, product)

    def delete_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> None:
        """
        Delete a product and its gallery images, and clean up Storage.
        """
        product = self.get_product(session, product_id, include_inactive=True)
        images = self.repo.list_images_for_product(session, product_id)

        if product.hero_image_url:
            delete_public_url(product.hero_image_url)

        for img in images:
            delete_public_url(img.image_url)
            self.repo.delete_image(session, img)

        self.repo.delete(session, product)
        logger.info("Deleted product %s", product_id)

    # ----- Hero image -----

    def set_hero_image(
        self,
        session: Session,
        product_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> Product:
        """
        Upload or replace the hero image for a product.

        Path pattern:
            products/<product_id>/hero.<ext>
        """
        product = self.get_product(session, product_id, include_inactive=True)
        ext = self._validate_and_get_ext(content_type, file_bytes)

        if product.hero_image_url:
            delete_public_url(product.hero_image_url)

        product.hero_image_url = upload_to_storage(
            f"products/{product.id}/hero.{ext}", file_bytes
        )
        return self.repo.update(session, product)

    # ----- Gallery images -----

    def list_images(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductImage]:
        self.get_product(session, product_id)
        return self.repo.list_images_for_product(session, product_id)

    def add_gallery_images(
        self,
        session: Session,
        product_id: uuid.UUID,
        files: Iterable[tuple[str, bytes]],
    ) -> list[ProductImage]:
        """
        Upload one or more gallery images for a product.

        Args:
            files: iterable of (content_type, file_bytes)

        Path pattern:
            products/<product_id>/gallery/<uuid>.<ext>
        """
        product = self.get_product(session, product_id, include_inactive=True)
        next_order = len(self.repo.list_images_for_product(session, product.id))

        new_images: list[ProductImage] = []
        for idx, (content_type, file_bytes) in enumerate(files):
            ext = self._validate_and_get_ext(content_type, file_bytes)
            url = upload_to_storage(
                f"products/{product.id}/gallery/{generate_filename(ext)}", file_bytes
            )
            image = ProductImage(
                product_id=product.id,
                image_url=url,
                sort_order=next_order + idx,
            )
            new_images.append(self.repo.create_image(session, image))

        return new_images

    def remove_gallery_image(
        self,
        session: Session,
        product_id: uuid.UUID,
        image_id: uuid.UUID,
    ) -> None:
        """
        Delete a single gallery image and its Storage file.
        """
        image = self.repo.get_image_by_id(session, image_id)
        if not image or image.product_id != product_id:
            raise NotFound("image_not_found", "Image not found for this product")

        delete_public_url(image.image_url)
        self.repo.delete_image(session, image)
