from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Base for API payloads: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

# ---------------- Products ---------------- #

class RetailerOut(CamelModel):
    id: int
    name: str
    logo: Optional[str] = None

class PriceOut(CamelModel):
    id: int
    product_id: int
    retailer_id: int
    price: str
    stock: Optional[str] = None
    url: Optional[str] = None
    retailer: RetailerOut

class ProductBase(CamelModel):
    barcode: str = Field(..., min_length=1, description="UPC/EAN")
    name: str = Field(..., min_length=1, description="Product name")
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    eco_score: Optional[int] = Field(None, ge=0, le=100)
    carbon_footprint: Optional[str] = None
    packaging_type: Optional[str] = None
    sustainability_certifications: List[str] = Field(default_factory=list)
    is_eco_friendly: bool = False

    @field_validator("barcode", mode="before")
    @classmethod
    def _strip_barcode(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("sustainability_certifications", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []

class ProductCreate(ProductBase):
    pass

class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    eco_score: Optional[int] = Field(None, ge=0, le=100)
    carbon_footprint: Optional[str] = None
    packaging_type: Optional[str] = None
    sustainability_certifications: Optional[List[str]] = None
    is_eco_friendly: Optional[bool] = None

class ProductOut(ProductBase):
    id: int
    prices: List[PriceOut] = Field(default_factory=list)

class ProductDetail(ProductOut):
    """Product plus the derived comparison figures shown on the detail page."""
    best_price: Optional[str] = None
    highest_price: Optional[str] = None
    average_price: float = 0.0
    savings: float = 0.0
    eco_label: Optional[str] = None
    sources: List[str] = Field(default_factory=list)

# ---------------- Scan ---------------- #

class ScanRequest(CamelModel):
    barcode: Optional[str] = None

class ScanResult(CamelModel):
    product: ProductDetail
    best_price: Optional[str] = None

class ScanHistoryOut(CamelModel):
    id: int
    barcode: str
    product_name: str
    scanned_at: Optional[datetime] = None
    best_price: Optional[str] = None

# ---------------- Favorites / shopping list ---------------- #

class FavoriteCreate(CamelModel):
    product_id: int

class FavoriteOut(CamelModel):
    id: int
    user_id: Optional[str] = None
    product_id: int
    added_at: Optional[datetime] = None
    product: Optional[ProductOut] = None

class ShoppingListItemCreate(CamelModel):
    """Line on the shopping list."""
    product_id: int
    quantity: int = Field(1, ge=1, description="Quantity")
    unit_price: Optional[str] = Field(None, description="User-entered price override")
    completed: bool = False

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price_to_str(cls, v):
        if v is None or isinstance(v, str):
            return v
        return f"{float(v):.2f}"

class ShoppingListItemUpdate(CamelModel):
    quantity: Optional[int] = Field(None, ge=1)
    unit_price: Optional[str] = None
    completed: Optional[bool] = None

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price_to_str(cls, v):
        if v is None or isinstance(v, str):
            return v
        return f"{float(v):.2f}"

class ShoppingListItemOut(CamelModel):
    id: int
    user_id: Optional[str] = None
    product_id: int
    quantity: int = 1
    unit_price: Optional[str] = None
    completed: bool = False
    added_at: Optional[datetime] = None
    product: Optional[ProductOut] = None

# ---------------- Chat ---------------- #

class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1)
    user_id: Optional[str] = None  # defaults to the session's chat id

class ChatMessageOut(CamelModel):
    id: int
    user_id: str
    message: str
    is_user: bool
    timestamp: Optional[datetime] = None

class ChatResponse(CamelModel):
    response: str
    user_id: str
