# storefront/data/models/product.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, CheckConstraint

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    brand = Column(String(100), nullable=True)
    thumbnail = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)

    price = Column(Numeric(10, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    #mutated only through the stock ledger
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("discount_percentage >= 0 AND discount_percentage <= 100", name="ck_product_discount_range"),
    )
