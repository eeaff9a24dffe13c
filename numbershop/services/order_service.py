# numbershop/services/order_service.py
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from numbershop.data.models.purchased_number import PurchasedNumberModel
from numbershop.domain.errors import NotFound
from numbershop.repos.order_repo import OrderRepo
from numbershop.repos.purchased_number_repo import PurchasedNumberRepo


class OrderService:
    """
    Odczyt zamowien i kupionych numerow (Query).
    Zamowienia tworzy tylko CheckoutService.fulfill.
    """

    def __init__(self, db: Session):
        self.repo = OrderRepo(db)
        self.numbers = PurchasedNumberRepo(db)

    def get_order(self, session_id: str, user_id: int) -> Dict[str, Any]:
        order = self.repo.get_by_session_id(session_id)

        # cudze zamowienie wyglada jak nieistniejace
        if not order or order.user_id != user_id:
            raise NotFound("Order not found")

        return {
            "order_id": order.id,
            "session_id": order.stripe_session_id,
            "total_amount": order.total_amount,
            "currency": order.currency,
            "status": order.status,
            "payment_status": order.payment_status,
            "subscription_id": order.stripe_subscription_id,
            "items": [
                {
                    "number": n.phone_number,
                    "country_code": n.country_code,
                    "area_code": n.area_code,
                    "monthly_price": n.monthly_price,
                }
                for n in self.numbers.list_for_order(order.id)
            ],
        }

    def list_numbers(self, user_id: int) -> List[PurchasedNumberModel]:
        return self.numbers.list_for_user(user_id)
