from pydantic import BaseModel, Field

from app.models.product import MAX_QUANTITY
from app.schemas.product import ProductResponse


class QuantityRequest(BaseModel):
    """Schema for purchase and restock requests."""
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY, description="Number of units (at least 1)")


class PurchaseReceipt(BaseModel):
    """Summary of one applied purchase."""
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    remaining_stock: int


class RestockReceipt(BaseModel):
    """Summary of one applied restock."""
    product_id: str
    product_name: str
    added_quantity: int
    previous_stock: int
    new_stock: int


class PurchaseResponse(BaseModel):
    message: str = "Purchase successful"
    purchase: PurchaseReceipt
    product: ProductResponse


class RestockResponse(BaseModel):
    message: str = "Restock successful"
    restock: RestockReceipt
    product: ProductResponse
