from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session
from typing import Annotated, Optional

from app.database import get_db
from app.dependencies.auth import require_admin, require_auth
from app.models.user import User
from app.schemas.inventory import (
    PurchaseResponse,
    QuantityRequest,
    RestockResponse,
)
from app.schemas.product import (
    MessageResponse,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductSearchResponse,
    ProductUpdate,
    SearchQuery,
)
from app.services.inventory_service import (
    InventoryService,
    purchase_receipt,
    restock_receipt,
)
from app.services.product_query import DEFAULT_LIMIT, MAX_LIMIT, Page, ProductFilter
from app.services.product_service import ProductService
from app.tasks.inventory_tasks import dispatch_inventory_event
from app.utils.cache import CacheService, get_cache

router = APIRouter(prefix="/products", tags=["Products"])


IdempotencyKey = Annotated[
    Optional[str],
    Header(
        alias="Idempotency-Key",
        min_length=1,
        max_length=64,
        description="Client-chosen request id; retries with the same key apply at most once",
    ),
]


@router.get(
    "",
    response_model=ProductListResponse,
    summary="List products",
    description="Paginated listing, newest first, with optional filters.",
)
def list_products(
    search: Optional[str] = Query(None, description="Case-insensitive match on name"),
    category: Optional[str] = Query(None, description="Exact category"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
    db: Session = Depends(get_db),
):
    """Get paginated list of products."""
    service = ProductService(db)
    filters = ProductFilter(text=search, category=category, min_price=min_price, max_price=max_price)
    products, total = service.list_products(filters, Page(limit=limit, offset=offset))

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/search",
    response_model=ProductSearchResponse,
    summary="Search products",
    description="Match name or description, alphabetical by name.",
)
def search_products(
    q: Optional[str] = Query(None, description="Case-insensitive match on name or description"),
    category: Optional[str] = Query(None, description="Exact category"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT, description="Optional page size"),
    offset: int = Query(0, ge=0, description="Items to skip"),
    db: Session = Depends(get_db),
):
    service = ProductService(db)
    filters = ProductFilter(text=q, category=category, min_price=min_price, max_price=max_price)
    products = service.search_products(filters, Page(limit=limit, offset=offset))

    return ProductSearchResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        query=SearchQuery(q=q, category=category, min_price=min_price, max_price=max_price),
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
    description="Get a single product. Results are cached in Redis.",
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return ProductService(db, cache).get_by_id_cached(product_id)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    dependencies=[Depends(require_admin)],
)
def create_product(product_data: ProductCreate, db: Session = Depends(get_db)):
    """
    Create a new product (admin only).

    - **name**, **category**: non-empty
    - **price**: non-negative
    - **quantity**: initial stock, non-negative
    - **description**, **image_url**: optional
    """
    return ProductService(db).create(product_data)


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
    description="Partial update: only supplied fields change.",
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: str,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return ProductService(db, cache).update(product_id, product_data)


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    summary="Delete a product",
    description="Permanent delete. Succeeds even if the product is already gone.",
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    ProductService(db, cache).delete(product_id)
    return MessageResponse(message="Product deleted successfully")


@router.post(
    "/{product_id}/purchase",
    response_model=PurchaseResponse,
    summary="Purchase a product",
    description="""
    Buy units of a product. Any authenticated user.

    Stock is decremented with a conditional update, so concurrent buyers can
    never take more than is on hand: requests beyond the available quantity
    receive 400 with an insufficient stock message.
    """,
)
def purchase_product(
    product_id: str,
    body: QuantityRequest,
    idempotency_key: IdempotencyKey = None,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    result = InventoryService(db, cache).purchase(product_id, body.quantity, user, idempotency_key)
    if not result.replayed:
        dispatch_inventory_event(result.event.id)

    return PurchaseResponse(
        purchase=purchase_receipt(result.event),
        product=ProductResponse.model_validate(result.product),
    )


@router.post(
    "/{product_id}/restock",
    response_model=RestockResponse,
    summary="Restock a product",
    description="Add units to a product's stock (admin only).",
)
def restock_product(
    product_id: str,
    body: QuantityRequest,
    idempotency_key: IdempotencyKey = None,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    result = InventoryService(db, cache).restock(product_id, body.quantity, user, idempotency_key)
    if not result.replayed:
        dispatch_inventory_event(result.event.id)

    return RestockResponse(
        restock=restock_receipt(result.event),
        product=ProductResponse.model_validate(result.product),
    )
