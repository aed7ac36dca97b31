"""
Filtering, ordering and pagination over the product collection.

Two modes share the same filters:

- listing: free text matches the name, newest products first
- search: free text matches name OR description, alphabetical by name

Both orderings end with the product id, so every page boundary is
deterministic.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from app.exceptions import ValidationError
from app.models.product import Product

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(frozen=True)
class ProductFilter:
    text: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    def validate(self) -> None:
        if self.min_price is not None and self.min_price < 0:
            raise ValidationError("minPrice must be non-negative")
        if self.max_price is not None and self.max_price < 0:
            raise ValidationError("maxPrice must be non-negative")
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValidationError("minPrice must not be greater than maxPrice")


@dataclass(frozen=True)
class Page:
    limit: Optional[int] = DEFAULT_LIMIT
    offset: int = 0

    def validate(self) -> None:
        if self.limit is not None and not 1 <= self.limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")
        if self.offset < 0:
            raise ValidationError("offset must be non-negative")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_filter(query: Query, filters: ProductFilter, match_description: bool = False) -> Query:
    """AND across fields; within the free text field, OR of name/description in search mode."""
    text = (filters.text or "").strip()
    if text:
        pattern = f"%{_escape_like(text)}%"
        if match_description:
            query = query.filter(
                or_(
                    Product.name.ilike(pattern, escape="\\"),
                    Product.description.ilike(pattern, escape="\\"),
                )
            )
        else:
            query = query.filter(Product.name.ilike(pattern, escape="\\"))

    category = (filters.category or "").strip()
    if category:
        query = query.filter(Product.category == category)

    if filters.min_price is not None:
        query = query.filter(Product.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Product.price <= filters.max_price)

    return query


def listing_order(query: Query) -> Query:
    return query.order_by(Product.created_at.desc(), Product.id.asc())


def search_order(query: Query) -> Query:
    return query.order_by(Product.name.asc(), Product.id.asc())


def run_query(
    db: Session,
    filters: ProductFilter,
    page: Page,
    search_mode: bool = False,
) -> tuple[list[Product], int]:
    """
    Run a filtered, ordered, paginated query.

    Returns:
        Tuple of (products on the page, total matches before pagination)
    """
    filters.validate()
    page.validate()

    query = apply_filter(db.query(Product), filters, match_description=search_mode)
    total = query.count()

    ordered = search_order(query) if search_mode else listing_order(query)
    if page.offset:
        ordered = ordered.offset(page.offset)
    if page.limit is not None:
        ordered = ordered.limit(page.limit)

    return ordered.all(), total
