# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal, init_db
from storefront.data.models.product import ProductModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    {
        "title": "Mechanical Keyboard",
        "description": "Tenkeyless keyboard with brown switches",
        "brand": "Keyline",
        "category": "peripherals",
        "price": Decimal("199.99"),
        "discount_percentage": Decimal("10"),
        "stock": 25,
    },
    {
        "title": "Wireless Mouse",
        "description": "Ergonomic mouse, 2.4 GHz receiver",
        "brand": "Pointa",
        "category": "peripherals",
        "price": Decimal("49.50"),
        "discount_percentage": Decimal("0"),
        "stock": 100,
    },
    {
        "title": "27in Monitor",
        "description": "IPS panel, 1440p, 144 Hz",
        "brand": "Viewmark",
        "category": "displays",
        "price": Decimal("899.00"),
        "discount_percentage": Decimal("15"),
        "stock": 8,
    },
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return
        db.add_all(ProductModel(**p) for p in PRODUCTS)
        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
