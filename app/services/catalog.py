"""
Storefront catalog visibility.

A product is visible to a caller when it is active and either has no region
restrictions or lists the caller's country. Unknown callers never see
region-restricted products.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.errors import ForbiddenError, NotFoundError
from app.models.product import Product


def normalize_country(country_code: Optional[str]) -> Optional[str]:
    if not country_code:
        return None
    return country_code.strip().upper() or None


def is_available_in_region(product: Product, country_code: Optional[str]) -> bool:
    """Region rule only; does not look at is_active."""
    if not product.regions:
        return True
    country_code = normalize_country(country_code)
    if country_code is None:
        return False
    return any(normalize_country(r.country_code) == country_code for r in product.regions)


def is_visible(product: Product, country_code: Optional[str]) -> bool:
    return bool(product.is_active) and is_available_in_region(product, country_code)


def list_visible_products(db: Session, country_code: Optional[str]) -> List[Product]:
    products = (
        db.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.created_at.desc())
        .all()
    )
    return [p for p in products if is_visible(p, country_code)]


def get_product_detail(db: Session, product_id: int, country_code: Optional[str]) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    if not product.is_active:
        raise NotFoundError("Product not available")
    if not is_available_in_region(product, country_code):
        raise ForbiddenError(
            "Product not available in your region",
            extra={"detectedCountry": normalize_country(country_code)},
        )
    return product
