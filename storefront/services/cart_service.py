from typing import Any, Dict, List

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import InsufficientStock, InvalidQuantity, LineNotFound, ProductNotFound
from storefront.domain.owner import Owner, SessionOwner, UserOwner
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services import pricing
from storefront.services.lock_service import LockService
from storefront.utils.settings import MERGE_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Cart store: one mutable active cart per owner (user or guest session).
    commands (add, set quantity, remove, clear, merge) change state and commit
    queries (view, totals) only read

    Stock is checked softly on every mutation, the hard check happens at order time.
    """

    def __init__(
        self,
        cart_repo: CartRepo,
        product_repo: ProductRepo,
        lock_service: LockService,
    ):
        self.repo = cart_repo
        self.product_repo = product_repo
        self.lock_service = lock_service

    #query
    def compute_totals(self, lines: List[CartItemModel]) -> pricing.CartTotals:
        return pricing.compute_totals(lines)

    def get_cart_view(self, owner: Owner) -> Dict[str, Any]:
        cart = self.get_or_create_active_cart(owner)
        lines = self.repo.get_cart_lines(cart.id)
        totals = self.compute_totals(lines)

        #dict turned into json by the response model
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "session_id": cart.session_id,
            "is_active": cart.is_active,
            "items": [self._line_view(line) for line in lines],
            "totals": totals.as_dict(),
        }

    @staticmethod
    def _line_view(line: CartItemModel) -> Dict[str, Any]:
        product = line.product
        return {
            "id": line.id,
            "product_id": line.product_id,
            "quantity": line.quantity,
            "price_at_time": line.price_at_time,
            "discount_percentage": line.discount_at_time,
            "discounted_price": pricing.round_money(
                pricing.discounted_unit_price(line.price_at_time, line.discount_at_time)
            ),
            "total": pricing.round_money(
                pricing.line_total(line.price_at_time, line.discount_at_time, line.quantity)
            ),
            "product": {
                "id": product.id,
                "title": product.title,
                "thumbnail": product.thumbnail,
                "brand": product.brand,
                "stock": product.stock,
                "category": product.category,
            },
        }

    #commands
    def get_or_create_active_cart(self, owner: Owner) -> CartModel:
        #check if the owner already has an active cart
        existing = self.repo.get_active_cart(owner)
        if existing:
            return existing

        created = self.repo.create_cart(owner)
        self.repo.commit()

        logger.info(f"Created cart {created.id} for {owner}")
        return created

    def add_line(self, cart: CartModel, product_id: int, quantity: int) -> CartItemModel:
        if quantity < 1:
            raise InvalidQuantity(quantity)

        product = self.product_repo.get_active_product(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        if product.stock < quantity:
            raise InsufficientStock(product.id, product.stock, quantity, product.title)

        existing = self.repo.get_line_by_product(cart.id, product_id)

        if existing:
            new_quantity = existing.quantity + quantity
            #combined quantity has to fit, the existing line stays untouched otherwise
            if product.stock < new_quantity:
                raise InsufficientStock(product.id, product.stock, new_quantity, product.title)

            logger.info(
                f"Product {product_id} already in cart {cart.id}, quantity "
                f"{existing.quantity} -> {new_quantity}"
            )
            existing.quantity = new_quantity
            line = existing
        else:
            logger.info(f"Adding product {product_id} x{quantity} to cart {cart.id}")
            line = self.repo.add_line(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    quantity=quantity,
                    price_at_time=product.price,
                    discount_at_time=product.discount_percentage,
                )
            )

        self.repo.commit()
        return line

    def set_line_quantity(self, cart: CartModel, line_id: int, quantity: int) -> CartItemModel:
        if quantity < 1:
            raise InvalidQuantity(quantity)

        line = self.repo.get_line(cart.id, line_id)
        if line is None:
            raise LineNotFound(line_id)

        product = line.product
        if product.stock < quantity:
            raise InsufficientStock(product.id, product.stock, quantity, product.title)

        line.quantity = quantity
        self.repo.commit()

        logger.info(f"Cart {cart.id} line {line_id} quantity set to {quantity}")
        return line

    def remove_line(self, cart: CartModel, line_id: int) -> None:
        line = self.repo.get_line(cart.id, line_id)
        if line is None:
            raise LineNotFound(line_id)

        self.repo.delete_line(line)
        self.repo.commit()

        logger.info(f"Line {line_id} removed from cart {cart.id}")

    def clear(self, cart: CartModel) -> None:
        removed = self.repo.delete_lines(cart.id)
        self.repo.commit()

        logger.info(f"Cart {cart.id} cleared, {removed} lines removed")

    def merge(self, session_id: str, user_id: int) -> CartModel | None:
        """
        Merge the active guest cart of `session_id` into the user's cart at login.
        No guest cart -> successful no-op.
        """
        guest = self.repo.get_active_cart(SessionOwner(session_id))
        if guest is None:
            logger.info(f"No guest cart to merge for session {session_id}")
            return None
        return self.merge_cart(guest.id, user_id)

    def merge_cart(self, guest_cart_id: int, user_id: int) -> CartModel | None:
        """
        Merge guest cart lines into the user's active cart, then delete the guest cart.

        Existing product lines are summed and capped at current stock (never fails,
        login must not be blocked). New lines keep the guest price snapshot.
        Idempotent: a guest cart that is already gone, or being merged by a
        concurrent request, is a no-op.
        """
        guest = self.repo.get_cart(guest_cart_id)
        if guest is None or guest.session_id is None:
            logger.info(f"Guest cart {guest_cart_id} already merged or missing")
            return None

        if not self.lock_service.acquire_merge_lock(guest_cart_id, user_id, MERGE_LOCK_TTL_SECONDS):
            logger.warning(f"Guest cart {guest_cart_id} is being merged by another request")
            return None

        try:
            #re-read under the lock, a concurrent merge may have deleted it meanwhile
            guest = self.repo.get_cart(guest_cart_id)
            if guest is None:
                logger.info(f"Guest cart {guest_cart_id} already merged")
                return None

            user_cart = self.repo.get_active_cart(UserOwner(user_id))
            if user_cart is None:
                user_cart = self.repo.create_cart(UserOwner(user_id))

            for guest_line in self.repo.get_cart_lines(guest.id):
                existing = self.repo.get_line_by_product(user_cart.id, guest_line.product_id)

                if existing:
                    combined = existing.quantity + guest_line.quantity
                    capped = min(combined, guest_line.product.stock)
                    if capped < 1:
                        #sold out, the user line is left as is and checkout will report it
                        logger.info(f"Product {guest_line.product_id} out of stock, user line kept")
                        continue
                    if capped < combined:
                        logger.info(
                            f"Merged quantity for product {guest_line.product_id} capped "
                            f"at stock {capped} (wanted {combined})"
                        )
                    existing.quantity = capped
                else:
                    self.repo.add_line(
                        CartItemModel(
                            cart_id=user_cart.id,
                            product_id=guest_line.product_id,
                            quantity=guest_line.quantity,
                            price_at_time=guest_line.price_at_time,
                            discount_at_time=guest_line.discount_at_time,
                        )
                    )

            self.repo.delete_cart(guest)
            self.repo.commit()

            logger.info(f"Guest cart {guest_cart_id} merged into cart {user_cart.id} of user {user_id}")
            return user_cart

        except Exception as e:
            logger.error(f"Merge of guest cart {guest_cart_id} failed: {e}")
            self.repo.rollback()
            raise

        finally:
            self.lock_service.release_merge_lock(guest_cart_id, user_id)
