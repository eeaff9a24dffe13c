# numbershop/services/auth_policy.py
from functools import lru_cache
from typing import Iterable

from numbershop.utils.settings import ADMIN_EMAILS


class AdminPolicy:
    """Admin = email z listy ADMIN_EMAILS."""

    def __init__(self, admin_emails: Iterable[str] = ()):
        self.admin_emails = {e.strip().lower() for e in admin_emails if e.strip()}

    def is_admin(self, user) -> bool:
        return bool(user and user.email and user.email.lower() in self.admin_emails)


@lru_cache
def get_admin_policy() -> AdminPolicy:
    return AdminPolicy(ADMIN_EMAILS)
