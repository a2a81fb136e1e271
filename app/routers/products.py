"""
Public storefront catalog, filtered by the caller's detected country.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.geolocation import GeoLocation, get_geo
from app.schemas.products import ProductDetailResponse, ProductListResponse, ProductResponse
from app.services import catalog

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("", response_model=ProductListResponse)
def list_products(
    db: Session = Depends(get_db),
    geo: GeoLocation = Depends(get_geo),
):
    products = catalog.list_visible_products(db, geo.country_code)
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        detected_country=geo.country_code,
        total_count=len(products),
    )


@router.get("/{product_id}", response_model=ProductDetailResponse)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    geo: GeoLocation = Depends(get_geo),
):
    product = catalog.get_product_detail(db, product_id, geo.country_code)
    return ProductDetailResponse(
        product=ProductResponse.model_validate(product),
        detected_country=geo.country_code,
    )
