# numbershop/repos/purchased_number_repo.py
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from numbershop.data.models.purchased_number import PurchasedNumberModel


class PurchasedNumberRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, number_id: int) -> PurchasedNumberModel | None:
        return self.db.get(PurchasedNumberModel, number_id)

    def refresh(self, number: PurchasedNumberModel) -> PurchasedNumberModel:
        self.db.refresh(number)
        return number

    def add(self, number: PurchasedNumberModel) -> PurchasedNumberModel:
        self.db.add(number)
        self.db.flush()
        return number

    def list_for_user(self, user_id: int) -> List[PurchasedNumberModel]:
        return list(
            self.db.execute(
                select(PurchasedNumberModel)
                .where(PurchasedNumberModel.user_id == user_id)
                .order_by(PurchasedNumberModel.created_at.desc(), PurchasedNumberModel.id.desc())
            ).scalars()
        )

    def list_for_order(self, order_id: int) -> List[PurchasedNumberModel]:
        return list(
            self.db.execute(
                select(PurchasedNumberModel)
                .where(PurchasedNumberModel.order_id == order_id)
                .order_by(PurchasedNumberModel.id)
            ).scalars()
        )

    def get_by_phone_number(self, phone_number: str) -> PurchasedNumberModel | None:
        return self.db.execute(
            select(PurchasedNumberModel)
            .where(PurchasedNumberModel.phone_number == phone_number)
            .order_by(PurchasedNumberModel.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def get_by_provider_did(self, did_id: str) -> PurchasedNumberModel | None:
        return self.db.execute(
            select(PurchasedNumberModel).where(PurchasedNumberModel.provider_did_id == did_id)
        ).scalar_one_or_none()

    def transition(self, number_id: int, from_status: str, new_data: dict) -> int:
        """
        Compare-and-set na provisioning_status.
        Zwraca rowcount - 0 znaczy ze ktos inny zmienil stan pierwszy.
        """
        res = self.db.execute(
            update(PurchasedNumberModel)
            .where(
                PurchasedNumberModel.id == number_id,
                PurchasedNumberModel.provisioning_status == from_status,
            )
            .values(**new_data)
        )
        return res.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
