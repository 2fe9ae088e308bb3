# storefront/repos/product_repo.py
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_active_product(self, product_id: int) -> ProductModel | None:
        product = self.get_product(product_id)
        if product is None or not product.is_active:
            return None
        return product

    def get_products(self, product_ids: Iterable[int]) -> List[ProductModel]:
        ids = list(product_ids)
        if not ids:
            return []
        #fresh read, objects already in the session get overwritten
        return list(
            self.db.execute(
                select(ProductModel)
                .where(ProductModel.id.in_(ids))
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def adjust_stock(self, product_id: int, delta: int) -> int | None:
        """
        Atomic stock += delta guarded by stock + delta >= 0.
        Returns the new stock, or None when the guard (or a missing row) rejects it.
        """
        #UPDATE products SET stock = stock + :delta WHERE id = :id AND stock + :delta >= 0
        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.stock + delta >= 0,
            )
            .values(stock=ProductModel.stock + delta)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            return None

        #reload so the instance in the session carries the new stock
        product = self.db.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        return product.stock

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
