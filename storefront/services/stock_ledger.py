# storefront/services/stock_ledger.py
from storefront.domain.errors import InvalidQuantity, ProductNotFound, StockViolation
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class StockLedger:
    """
    Authoritative available-quantity counter per product.
    Order creation, cancellation and admin restock all go through adjust().
    No holds or reservations, the guard in adjust() is the only hard check.
    """

    def __init__(self, product_repo: ProductRepo):
        self.product_repo = product_repo

    def adjust(self, product_id: int, delta: int) -> int:
        new_stock = self.product_repo.adjust_stock(product_id, delta)

        if new_stock is None:
            logger.warning(f"Stock guard rejected {delta:+d} for product {product_id}")
            raise StockViolation(product_id, delta)

        logger.info(f"Stock of product {product_id} adjusted by {delta:+d}, now {new_stock}")
        return new_stock

    def restock(self, product_id: int, quantity: int) -> int:
        """Administrative restock. Commits on its own."""
        if quantity < 1:
            raise InvalidQuantity(quantity)

        if self.product_repo.get_product(product_id) is None:
            raise ProductNotFound(product_id)

        new_stock = self.adjust(product_id, quantity)
        self.product_repo.commit()
        return new_stock
