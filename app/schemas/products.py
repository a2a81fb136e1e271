import re
from decimal import Decimal
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from app.schemas.common import ApiModel

COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$", re.IGNORECASE | re.ASCII)
CURRENCY_RE = re.compile(r"^[A-Z]{3}$", re.IGNORECASE | re.ASCII)


def normalize_country_code(value: str) -> str:
    """Accept a 2-letter ISO country code in any case and return it uppercased."""
    value = (value or "").strip()
    if not COUNTRY_CODE_RE.match(value):
        raise ValueError("countryCode must be a 2-letter ISO code (e.g., BR, US, ES)")
    return value.upper()


def _normalize_currency(value: str) -> str:
    value = (value or "").strip()
    if not CURRENCY_RE.match(value):
        raise ValueError("currency must be a 3-letter ISO code (e.g., BRL, USD)")
    return value.upper()


class PriceCreate(ApiModel):
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: str = "BRL"
    category: str = Field(..., min_length=1, max_length=100)
    delivery_link: Optional[str] = Field(None, max_length=1024)

    @field_validator("currency")
    @classmethod
    def _currency(cls, v):
        return _normalize_currency(v)


class PriceUpdate(ApiModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    delivery_link: Optional[str] = Field(None, max_length=1024)

    @field_validator("currency")
    @classmethod
    def _currency(cls, v):
        return _normalize_currency(v) if v is not None else v


class PriceResponse(ApiModel):
    """Storefront view of a price; the delivery link stays private"""
    id: int
    product_id: int
    amount: float
    currency: str
    category: str


class AdminPriceResponse(PriceResponse):
    delivery_link: Optional[str] = None
    created_at: datetime


class RegionCreate(ApiModel):
    product_id: int
    country_code: str

    @field_validator("country_code")
    @classmethod
    def _country_code(cls, v):
        return normalize_country_code(v)


class RegionResponse(ApiModel):
    id: int
    product_id: int
    country_code: str
    created_at: datetime


class ProductCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1, max_length=1024)
    is_active: bool = True
    preview_media_url: Optional[str] = Field(None, max_length=1024)
    telegram_link: Optional[str] = Field(None, max_length=1024)
    prices: List[PriceCreate] = []


class ProductUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = Field(None, min_length=1, max_length=1024)
    is_active: Optional[bool] = None
    preview_media_url: Optional[str] = Field(None, max_length=1024)
    telegram_link: Optional[str] = Field(None, max_length=1024)


class ProductResponse(ApiModel):
    id: int
    name: str
    description: str
    image_url: str
    is_active: bool
    preview_media_url: Optional[str] = None
    telegram_link: Optional[str] = None
    prices: List[PriceResponse] = []
    created_at: datetime
    updated_at: datetime
    available_in_region: bool = True


class AdminProductResponse(ApiModel):
    id: int
    name: str
    description: str
    image_url: str
    is_active: bool
    preview_media_url: Optional[str] = None
    telegram_link: Optional[str] = None
    prices: List[AdminPriceResponse] = []
    regions: List[RegionResponse] = []
    created_at: datetime
    updated_at: datetime


class ProductListResponse(ApiModel):
    products: List[ProductResponse]
    detected_country: Optional[str] = None
    total_count: int


class ProductDetailResponse(ApiModel):
    product: ProductResponse
    detected_country: Optional[str] = None


class AdminProductListResponse(ApiModel):
    products: List[AdminProductResponse]


class AdminProductEnvelope(ApiModel):
    message: str
    product: AdminProductResponse


class AdminPriceEnvelope(ApiModel):
    message: str
    price: AdminPriceResponse


class RegionEnvelope(ApiModel):
    message: str
    region: RegionResponse
