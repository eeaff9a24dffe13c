# numbershop/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, get_current_user
from numbershop.data.models.user import UserModel
from numbershop.domain.schemas import OrderOut, PurchasedNumberOut
from numbershop.services.order_service import OrderService

router = APIRouter(tags=["orders"])


def get_service(db: Session) -> OrderService:
    return OrderService(db)


@router.get("/orders/{session_id}", response_model=OrderOut)
def get_order(
    session_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Szczegoly zamowienia po id sesji platnosci (strona sukcesu)."""
    return get_service(db).get_order(session_id, user.id)


@router.get("/numbers", response_model=List[PurchasedNumberOut])
def list_numbers(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_service(db).list_numbers(user.id)
