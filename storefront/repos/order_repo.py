# storefront/repos/order_repo.py
from typing import Iterable, List, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.errors import DuplicateOrderNumber


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.execute(
            select(OrderModel.id).where(OrderModel.order_number == order_number)
        ).first() is not None

    def add_order(self, order: OrderModel) -> OrderModel:
        """
        Header insert. Must be the first write of the unit of work:
        a unique violation rolls the whole transaction back.
        """
        self.db.add(order)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if "order_number" in str(e.orig).lower() or self.order_number_exists(order.order_number):
                raise DuplicateOrderNumber(order.order_number) from e
            raise
        return order

    def add_order_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def transition_status(self, order_id: int, allowed_from: Iterable[str], **values) -> bool:
        """
        Conditional status change in one statement:
        UPDATE orders SET ... WHERE id = :id AND status IN (:allowed_from)
        False when the order left `allowed_from` in the meantime.
        """
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status.in_(list(allowed_from)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        #reload so the instance in the session carries the new status
        self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        return True

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_items(self, order_id: int) -> List[OrderItemModel]:
        return list(
            self.db.execute(
                select(OrderItemModel)
                .where(OrderItemModel.order_id == order_id)
                .order_by(OrderItemModel.id)
            ).scalars()
        )

    def list_orders(
        self,
        user_id: int | None = None,
        status: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[OrderModel], int]:
        filters = []
        if user_id is not None:
            filters.append(OrderModel.user_id == user_id)
        if status:
            filters.append(OrderModel.status == status)
        if payment_status:
            filters.append(OrderModel.payment_status == payment_status)

        total = self.db.execute(
            select(func.count(OrderModel.id)).where(*filters)
        ).scalar_one()

        orders = list(
            self.db.execute(
                select(OrderModel)
                .where(*filters)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).scalars()
        )
        return orders, total

    def refresh(self, order: OrderModel) -> None:
        self.db.refresh(order)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
