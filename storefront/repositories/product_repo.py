# storefront/repositories/product_repo.py
import uuid

from sqlalchemy import String, column, delete, func, or_, select as sa_select, update
from sqlmodel import Session, col, select

from storefront.models.cart import CartItem
from storefront.models.product import Product, ProductCategory, ProductImage
from storefront.models.review import Review

# Sortable columns exposed to the catalog query
SORT_COLUMNS = {
    "created_at": Product.created_at,
    "price": Product.price,
    "rating": Product.rating,
}


class ProductRepository:
    """
    Data access layer for Product & ProductImage.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_by_slug(self, session: Session, slug: str) -> Product | None:
        stmt = select(Product).where(Product.slug == slug)
        return session.exec(stmt).first()

    @staticmethod
    def _tag_matches(session: Session, term: str):
        """
        EXISTS over the elements of the JSON tags array, so a term is
        matched against each tag rather than the serialized list.
        """
        if session.get_bind().dialect.name == "sqlite":
            elements = func.json_each(Product.tags)
        else:
            elements = func.json_array_elements_text(Product.tags)
        tag = elements.table_valued(column("value", String)).alias("tag")
        return (
            sa_select(1)
            .select_from(tag)
            .where(tag.c.value.icontains(term, autoescape=True))
            .correlate(Product)
            .exists()
        )

    def find(
        self,
        session: Session,
        *,
        category: ProductCategory | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        offset: int = 0,
        limit: int = 12,
        only_active: bool = True,
    ) -> tuple[list[Product], int]:
        """
        Filtered, sorted, paginated product listing.

        Returns the requested slice and the total number of matches.
        Ordering ties are broken by id so paging is deterministic.
        """
        conditions = []
        if only_active:
            conditions.append(col(Product.is_active).is_(True))
        if category is not None:
            conditions.append(Product.category == category)
        if search:
            conditions.append(
                or_(
                    col(Product.name).icontains(search, autoescape=True),
                    col(Product.description).icontains(search, autoescape=True),
                    self._tag_matches(session, search),
                )
            )
        if min_price is not None:
            conditions.append(Product.price >= min_price)
        if max_price is not None:
            conditions.append(Product.price <= max_price)

        count_stmt = select(func.count()).select_from(Product).where(*conditions)
        total = session.exec(count_stmt).one()

        sort_col = SORT_COLUMNS[sort_by]
        stmt = (
            select(Product)
            .where(*conditions)
            .order_by(sort_col.desc() if descending else sort_col.asc(), col(Product.id).asc())
            .offset(offset)
            .limit(limit)
        )
        return list(session.exec(stmt).all()), total

    def list_categories(self, session: Session) -> list[ProductCategory]:
        stmt = (
            select(Product.category)
            .where(col(Product.is_active).is_(True))
            .distinct()
        )
        return sorted(session.exec(stmt).all(), key=lambda c: c.value)

    def list_related(
        self,
        session: Session,
        product: Product,
        limit: int = 8,
    ) -> list[Product]:
        stmt = (
            select(Product)
            .where(
                Product.category == product.category,
                Product.id != product.id,
                col(Product.is_active).is_(True),
            )
            .order_by(col(Product.rating).desc(), col(Product.id).asc())
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def delete(self, session: Session, product: Product) -> None:
        """Delete a product together with its reviews and cart lines."""
        session.execute(delete(CartItem).where(col(CartItem.product_id) == product.id))
        session.execute(delete(Review).where(col(Review.product_id) == product.id))
        session.delete(product)
        session.commit()

    # ----- Derived review aggregate -----

    def recompute_rating(self, session: Session, product_id: uuid.UUID) -> None:
        """
        Re-derive rating / review_count from every review of the product
        in a single UPDATE statement.

        The aggregate is always folded from the full review set, so
        interleaved submissions converge on the same result whichever
        UPDATE lands last.
        """
        count_q = (
            select(func.count(Review.id))
            .where(Review.product_id == product_id)
            .scalar_subquery()
        )
        avg_q = (
            select(func.coalesce(func.round(func.avg(Review.rating), 1), 0))
            .where(Review.product_id == product_id)
            .scalar_subquery()
        )
        stmt = (
            update(Product)
            .where(col(Product.id) == product_id)
            .values(review_count=count_q, rating=avg_q)
        )
        session.execute(stmt)
        session.commit()

    # ----- Product images -----

    def list_images_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(ProductImage.sort_order)
        )
        return list(session.exec(stmt).all())

    def get_image_by_id(
        self,
        session: Session,
        image_id: uuid.UUID,
    ) -> ProductImage | None:
        return session.get(ProductImage, image_id)

    def create_image(
        self,
        session: Session,
        image: ProductImage,
    ) -> ProductImage:
        session.add(image)
        session.commit()
        session.refresh(image)
        return image

    def delete_image(
        self,
        session: Session,
        image: ProductImage,
    ) -> None:
        session.delete(image)
        session.commit()
