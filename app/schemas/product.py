from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from datetime import datetime
from typing import Optional

from app.models.product import MAX_QUANTITY


class ProductBase(BaseModel):
    """Base schema for Product with common attributes."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    category: str = Field(..., min_length=1, max_length=100, description="Product category")
    price: float = Field(..., ge=0, description="Unit price (must be non-negative)")
    quantity: int = Field(..., ge=0, le=MAX_QUANTITY, description="Quantity on hand (must be non-negative)")
    description: str = Field(default="", description="Product description")


class ProductCreate(ProductBase):
    """Schema for creating a new product."""
    image_url: Optional[HttpUrl] = Field(None, description="Image URL")


class ProductUpdate(BaseModel):
    """Schema for updating an existing product. All fields are optional."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Product name")
    category: Optional[str] = Field(None, min_length=1, max_length=100, description="Product category")
    price: Optional[float] = Field(None, ge=0, description="Unit price")
    quantity: Optional[int] = Field(None, ge=0, le=MAX_QUANTITY, description="Quantity on hand")
    description: Optional[str] = Field(None, description="Product description")
    image_url: Optional[HttpUrl] = Field(None, description="Image URL")


class ProductResponse(ProductBase):
    """Schema for product response including all fields."""
    id: str
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""
    items: list[ProductResponse]
    total: int
    limit: int
    offset: int


class SearchQuery(BaseModel):
    """Echo of the filters applied by a search."""
    q: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[float] = Field(None, serialization_alias="minPrice")
    max_price: Optional[float] = Field(None, serialization_alias="maxPrice")


class ProductSearchResponse(BaseModel):
    """Schema for search results."""
    items: list[ProductResponse]
    query: SearchQuery


class MessageResponse(BaseModel):
    message: str
