# storefront/schemas/common.py
import math

from sqlmodel import SQLModel


class PageInfo(SQLModel):
    """
    Pagination block shared by product and review listings.

    Pages are 1-indexed.
    """

    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, page_size: int, total_items: int) -> "PageInfo":
        total_pages = math.ceil(total_items / page_size) if page_size > 0 else 0
        return cls(
            current_page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )
