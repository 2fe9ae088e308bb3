# storefront/repos/cart_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.owner import Owner, UserOwner, SessionOwner


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    # carts
    def get_cart(self, cart_id: int) -> CartModel | None:
        #always hits the database, the identity map may hold a cart deleted meanwhile
        return self.db.execute(
            select(CartModel).where(CartModel.id == cart_id)
        ).scalar_one_or_none()

    def get_active_cart(self, owner: Owner) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.is_active.is_(True))

        if isinstance(owner, UserOwner):
            stmt = stmt.where(CartModel.user_id == owner.user_id)
        elif isinstance(owner, SessionOwner):
            stmt = stmt.where(CartModel.session_id == owner.session_id)
        else:
            raise TypeError(f"Unknown cart owner {owner!r}")

        return self.db.execute(stmt).scalar_one_or_none()

    def create_cart(self, owner: Owner) -> CartModel:
        """
        Insert an active cart for `owner`. Must be the first write of the unit of work:
        losing the race on the one-active-cart index rolls back and returns the winner.
        """
        if isinstance(owner, UserOwner):
            cart = CartModel(user_id=owner.user_id, is_active=True)
        else:
            cart = CartModel(session_id=owner.session_id, is_active=True)

        self.db.add(cart)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_active_cart(owner)
            if existing is None:
                raise
            return existing
        return cart

    def deactivate_cart(self, cart: CartModel) -> None:
        cart.is_active = False
        self.db.flush()

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)
        self.db.flush()

    # lines
    def get_cart_lines(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def get_line(self, cart_id: int, line_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.id == line_id,
                CartItemModel.cart_id == cart_id,
            )
        ).scalar_one_or_none()

    def get_line_by_product(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_line(self, line: CartItemModel) -> CartItemModel:
        self.db.add(line)
        self.db.flush()
        return line

    def delete_line(self, line: CartItemModel) -> None:
        self.db.delete(line)
        self.db.flush()

    def delete_lines(self, cart_id: int) -> int:
        lines = self.get_cart_lines(cart_id)
        for line in lines:
            self.db.delete(line)
        self.db.flush()
        return len(lines)

    # unit of work
    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
