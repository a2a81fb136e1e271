"""
Seed script: demo catalog, region allow-lists and default operator settings.

Usage:
    python seed_products.py

Idempotent: products are matched by name, settings are only written when missing.
"""
from decimal import Decimal

from app.database import SessionLocal
from app.models.product import Product, Price, ProductRegion
from app.models.setting import Setting, PopupConfig
from app.services import settings as settings_service

PRODUCTS = [
    {
        "name": "Pacote Essencial",
        "description": "Acesso ao canal privado com o conteúdo essencial.",
        "image_url": "https://placehold.co/600x400?text=Essencial",
        "telegram_link": "https://t.me/+essencial",
        "prices": [
            {"amount": Decimal("29.90"), "currency": "BRL", "category": "Mensal",
             "delivery_link": "https://t.me/+essencial-mensal"},
            {"amount": Decimal("9.99"), "currency": "USD", "category": "Monthly",
             "delivery_link": "https://t.me/+essencial-monthly"},
        ],
        "regions": [],
    },
    {
        "name": "Pacote Premium",
        "description": "Conteúdo completo com atualizações semanais.",
        "image_url": "https://placehold.co/600x400?text=Premium",
        "preview_media_url": "https://placehold.co/600x400.mp4",
        "telegram_link": "https://t.me/+premium",
        "prices": [
            {"amount": Decimal("79.90"), "currency": "BRL", "category": "Mensal",
             "delivery_link": "https://t.me/+premium-mensal"},
            {"amount": Decimal("199.90"), "currency": "BRL", "category": "Vitalício",
             "delivery_link": "https://t.me/+premium-vitalicio"},
        ],
        # Only sold in Brazil and Portugal
        "regions": ["BR", "PT"],
    },
]

DEFAULT_SETTINGS = {
    settings_service.SUPPORT_TELEGRAM: "@suporte",
    settings_service.TELEGRAM_SUPPORT_LINK: "https://t.me/suporte",
    settings_service.BTC_WALLET_ADDRESS: "",
    settings_service.PAYMENT_GATEWAY: settings_service.DEFAULT_PAYMENT_GATEWAY,
    settings_service.BLACK_FRIDAY_PROMO: "false",
    settings_service.FORCED_PURCHASE: "false",
}

db = SessionLocal()
try:
    for p in PRODUCTS:
        product = db.query(Product).filter(Product.name == p["name"]).first()

        if not product:
            product = Product(
                name=p["name"],
                description=p["description"],
                image_url=p["image_url"],
                preview_media_url=p.get("preview_media_url"),
                telegram_link=p.get("telegram_link"),
                is_active=True,
            )
            for price in p["prices"]:
                product.prices.append(Price(**price))
            db.add(product)
            db.flush()
            print(f"  Created: {p['name']} ({len(p['prices'])} prices)")
        else:
            print(f"  Exists:  {p['name']}")

        for country_code in p["regions"]:
            exists = db.query(ProductRegion).filter(
                ProductRegion.product_id == product.id,
                ProductRegion.country_code == country_code,
            ).first()
            if not exists:
                db.add(ProductRegion(product_id=product.id, country_code=country_code))
                print(f"    + region {country_code}")

    for key, value in DEFAULT_SETTINGS.items():
        if not db.query(Setting).filter(Setting.key == key).first():
            db.add(Setting(key=key, value=value))
            print(f"  Setting: {key}")

    if not db.query(PopupConfig).first():
        db.add(PopupConfig(
            message="Dúvidas? Fale com o suporte no Telegram.",
            button_text="Falar com suporte",
            button_link="https://t.me/suporte",
            is_active=False,
        ))
        print("  Popup: default (inactive)")

    db.commit()
    print("Done.")
except Exception:
    db.rollback()
    raise
finally:
    db.close()
