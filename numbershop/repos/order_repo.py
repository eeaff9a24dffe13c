# numbershop/repos/order_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from numbershop.data.models.order import OrderModel


class OrderRepo:
    """
    Zamowienia. Zapis bez commita - fulfillment robi order + numery + kolejke
    w jednej transakcji i commituje sam.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_by_session_id(self, session_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.stripe_session_id == session_id)
        ).scalar_one_or_none()

    def _annotate(self, criterion, fields: dict) -> int:
        res = self.db.execute(update(OrderModel).where(criterion).values(**fields))
        self.db.commit()
        return res.rowcount

    def annotate_by_payment_intent(self, payment_intent_id: str, **fields) -> int:
        return self._annotate(OrderModel.stripe_payment_intent_id == payment_intent_id, fields)

    def annotate_by_subscription(self, subscription_id: str, **fields) -> int:
        return self._annotate(OrderModel.stripe_subscription_id == subscription_id, fields)
