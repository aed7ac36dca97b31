import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.database import store_guard
from app.exceptions import NotFoundError
from app.models.product import Product, utcnow
from app.schemas.product import ProductCreate, ProductResponse, ProductUpdate
from app.services.product_query import Page, ProductFilter, run_query
from app.utils.cache import CacheService

logger = logging.getLogger(__name__)


class ProductService:
    """
    Service class for Product CRUD operations.

    This service handles:
    - Creating new products
    - Reading products (with caching)
    - Updating products
    - Deleting products
    - Listing and searching through the query engine
    - Cache invalidation

    Quantity changes from purchases and restocks go through
    InventoryService, never through `update`.
    """

    CACHE_PREFIX = "product"

    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        Args:
            product_data: Validated product creation data

        Returns:
            Created product instance
        """
        data = product_data.model_dump()
        if data.get("image_url") is not None:
            data["image_url"] = str(data["image_url"])

        with store_guard(self.db, "create product"):
            product = Product(**data)
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)

        logger.info(f"Created product {product.id} ({product.name})")
        return product

    def get_by_id(self, product_id: str) -> Product:
        """
        Get a product by ID straight from the database.

        Raises:
            NotFoundError: If the product does not exist
        """
        with store_guard(self.db, "get product"):
            product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    def get_by_id_cached(self, product_id: str) -> dict:
        """
        Get product details from cache or database.
        Returns a dictionary (suitable for API response).

        Raises:
            NotFoundError: If the product does not exist
        """
        if self.cache:
            cached = self.cache.get(self.CACHE_PREFIX, product_id)
            if cached:
                return cached

        product = self.get_by_id(product_id)
        product_dict = ProductResponse.model_validate(product).model_dump(mode="json")
        if self.cache:
            self.cache.set(self.CACHE_PREFIX, product_id, product_dict)
        return product_dict

    def list_products(self, filters: ProductFilter, page: Page) -> tuple[list[Product], int]:
        """Default listing: name match, newest first, paginated."""
        with store_guard(self.db, "list products"):
            return run_query(self.db, filters, page)

    def search_products(self, filters: ProductFilter, page: Page) -> list[Product]:
        """Search mode: name or description match, alphabetical."""
        with store_guard(self.db, "search products"):
            products, _ = run_query(self.db, filters, page, search_mode=True)
        return products

    def update(self, product_id: str, product_data: ProductUpdate) -> Product:
        """
        Update an existing product.

        Args:
            product_id: ID of product to update
            product_data: Update data (only supplied, non-None fields are updated);
                updated_at is refreshed even when nothing else changes

        Returns:
            Updated product

        Raises:
            NotFoundError: If the product does not exist
        """
        update_data = {
            field: value
            for field, value in product_data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if "image_url" in update_data:
            update_data["image_url"] = str(update_data["image_url"])

        with store_guard(self.db, "update product"):
            product = self.get_by_id(product_id)
            for field, value in update_data.items():
                setattr(product, field, value)
            product.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(product)

        self.invalidate(product_id)
        logger.info(f"Updated product {product_id}: {sorted(update_data)}")
        return product

    def delete(self, product_id: str) -> None:
        """
        Hard-delete a product. Deleting an absent product also succeeds.
        """
        with store_guard(self.db, "delete product"):
            deleted = (
                self.db.query(Product)
                .filter(Product.id == product_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()

        self.invalidate(product_id)
        if deleted:
            logger.info(f"Deleted product {product_id}")
        else:
            logger.info(f"Delete requested for absent product {product_id}")

    def invalidate(self, product_id: str) -> None:
        """Invalidate cache for a product."""
        if self.cache:
            self.cache.delete(self.CACHE_PREFIX, product_id)
