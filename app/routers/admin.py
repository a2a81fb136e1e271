"""
Back-office: catalog CRUD, region allow-lists and order listing - admin only.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.auth.dependencies import require_admin
from app.database import get_db
from app.models.order import Order, OrderStatus
from app.models.product import Product, Price, ProductRegion
from app.schemas.common import MessageResponse
from app.schemas.payments import AdminOrderListResponse, AdminOrderResponse
from app.schemas.products import (
    AdminPriceEnvelope,
    AdminPriceResponse,
    AdminProductEnvelope,
    AdminProductListResponse,
    AdminProductResponse,
    PriceCreate,
    PriceUpdate,
    ProductCreate,
    ProductUpdate,
    RegionCreate,
    RegionEnvelope,
    RegionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

# Columns that cannot be cleared through a partial update
_REQUIRED_PRODUCT_FIELDS = ("name", "description", "image_url", "is_active")
_REQUIRED_PRICE_FIELDS = ("amount", "currency", "category")


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _get_price_or_404(db: Session, price_id: int) -> Price:
    price = db.query(Price).filter(Price.id == price_id).first()
    if not price:
        raise HTTPException(status_code=404, detail="Price not found")
    return price


def _partial_update(obj, updates: dict, required_fields) -> None:
    for field, value in updates.items():
        if value is None and field in required_fields:
            continue
        setattr(obj, field, value)


@router.get("/products", response_model=AdminProductListResponse)
def list_products(db: Session = Depends(get_db)):
    """All products, including inactive and region-restricted ones"""
    products = db.query(Product).order_by(Product.created_at.desc()).all()
    return AdminProductListResponse(
        products=[AdminProductResponse.model_validate(p) for p in products]
    )


@router.post("/products", response_model=AdminProductEnvelope, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    product = Product(
        name=data.name,
        description=data.description,
        image_url=data.image_url,
        is_active=data.is_active,
        preview_media_url=data.preview_media_url,
        telegram_link=data.telegram_link,
    )
    for p in data.prices:
        product.prices.append(Price(
            amount=p.amount,
            currency=p.currency,
            category=p.category,
            delivery_link=p.delivery_link,
        ))

    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product %s created with %d prices", product.id, len(data.prices))
    return AdminProductEnvelope(
        message="Product created successfully",
        product=AdminProductResponse.model_validate(product),
    )


@router.post("/products/regions", response_model=RegionEnvelope, status_code=status.HTTP_201_CREATED)
def add_product_region(data: RegionCreate, db: Session = Depends(get_db)):
    """Restrict a product to a country; repeated calls are idempotent"""
    _get_product_or_404(db, data.product_id)

    region = db.query(ProductRegion).filter(
        ProductRegion.product_id == data.product_id,
        ProductRegion.country_code == data.country_code,
    ).first()
    if region is None:
        region = ProductRegion(product_id=data.product_id, country_code=data.country_code)
        db.add(region)
        db.commit()
        db.refresh(region)

    return RegionEnvelope(
        message="Product region association created",
        region=RegionResponse.model_validate(region),
    )


@router.delete("/products/regions/{region_id}", response_model=MessageResponse)
def delete_product_region(region_id: int, db: Session = Depends(get_db)):
    region = db.query(ProductRegion).filter(ProductRegion.id == region_id).first()
    if not region:
        raise HTTPException(status_code=404, detail="Region association not found")
    db.delete(region)
    db.commit()
    return MessageResponse(message="Product region association deleted")


@router.get("/products/{product_id}", response_model=AdminProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return _get_product_or_404(db, product_id)


@router.put("/products/{product_id}", response_model=AdminProductEnvelope)
def update_product(product_id: int, data: ProductUpdate, db: Session = Depends(get_db)):
    product = _get_product_or_404(db, product_id)
    _partial_update(product, data.model_dump(exclude_unset=True), _REQUIRED_PRODUCT_FIELDS)

    db.commit()
    db.refresh(product)
    return AdminProductEnvelope(
        message="Product updated successfully",
        product=AdminProductResponse.model_validate(product),
    )


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    """Delete a product together with its prices and regions"""
    product = _get_product_or_404(db, product_id)
    if db.query(Order).join(Price).filter(Price.product_id == product_id).first():
        raise HTTPException(
            status_code=400,
            detail="Product has orders and cannot be deleted; deactivate it instead",
        )
    db.delete(product)
    db.commit()
    logger.info("Product %s deleted", product_id)
    return MessageResponse(message="Product deleted successfully")


@router.post(
    "/products/{product_id}/prices",
    response_model=AdminPriceEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def add_price(product_id: int, data: PriceCreate, db: Session = Depends(get_db)):
    _get_product_or_404(db, product_id)

    price = Price(
        product_id=product_id,
        amount=data.amount,
        currency=data.currency,
        category=data.category,
        delivery_link=data.delivery_link,
    )
    db.add(price)
    db.commit()
    db.refresh(price)
    return AdminPriceEnvelope(message="Price created successfully", price=AdminPriceResponse.model_validate(price))


@router.put("/prices/{price_id}", response_model=AdminPriceEnvelope)
def update_price(price_id: int, data: PriceUpdate, db: Session = Depends(get_db)):
    price = _get_price_or_404(db, price_id)
    _partial_update(price, data.model_dump(exclude_unset=True), _REQUIRED_PRICE_FIELDS)

    db.commit()
    db.refresh(price)
    return AdminPriceEnvelope(message="Price updated successfully", price=AdminPriceResponse.model_validate(price))


@router.delete("/prices/{price_id}", response_model=MessageResponse)
def delete_price(price_id: int, db: Session = Depends(get_db)):
    price = _get_price_or_404(db, price_id)
    if db.query(Order).filter(Order.price_id == price_id).first():
        raise HTTPException(status_code=400, detail="Price has orders and cannot be deleted")
    db.delete(price)
    db.commit()
    return MessageResponse(message="Price deleted successfully")


@router.get("/orders", response_model=AdminOrderListResponse)
def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(Order)
    if order_status is not None:
        query = query.filter(Order.status == order_status)
    orders = query.order_by(Order.created_at.desc()).all()
    return AdminOrderListResponse(orders=[AdminOrderResponse.model_validate(o) for o in orders])
