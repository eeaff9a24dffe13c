# numbershop/api/dependencies.py
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from numbershop.data.database import get_db
from numbershop.data.models.user import UserModel
from numbershop.domain.errors import Forbidden, Unauthorized
from numbershop.repos.user_repo import UserRepo
from numbershop.services.auth_policy import AdminPolicy, get_admin_policy
from numbershop.services.cart_service import CartService, CartStore, get_cart_store
from numbershop.services.payment_gateway import get_payment_gateway
from numbershop.services.telephony import get_telephony_provider

# fabryki klientow sa cachowane (lru_cache) i podmieniane w testach przez dependency_overrides
__all__ = [
    "get_db",
    "get_current_user",
    "require_admin",
    "get_cart_service",
    "get_cart_store",
    "get_payment_gateway",
    "get_telephony_provider",
    "get_admin_policy",
]

bearer = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> UserModel:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Authentication required")

    user = UserRepo(db).get_by_token(credentials.credentials)
    if user is None:
        raise Unauthorized("Invalid token")
    return user


def require_admin(
    user: UserModel = Depends(get_current_user),
    policy: AdminPolicy = Depends(get_admin_policy),
) -> UserModel:
    if not policy.is_admin(user):
        raise Forbidden("Admin access required")
    return user


def get_cart_service(store: CartStore = Depends(get_cart_store)) -> CartService:
    return CartService(store)
