# numbershop/repos/user_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from numbershop.data.models.user import UserModel


class UserRepo:
    """Tylko odczyt - konta zaklada zewnetrzny system auth."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_token(self, token: str) -> UserModel | None:
        return self.db.execute(
            select(UserModel).where(UserModel.api_token == token)
        ).scalar_one_or_none()
