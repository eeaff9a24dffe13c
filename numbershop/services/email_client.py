# numbershop/services/email_client.py
from functools import lru_cache
from typing import List

import requests

from numbershop.utils.retry import http_retry
from numbershop.utils.settings import RESEND_API_KEY, RESEND_FROM_EMAIL
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailClient:
    """Wysylka maili przez Resend. Bez klucza API tylko loguje."""

    def __init__(self, api_key: str | None = None, sender: str | None = None, timeout: int = 5):
        self.api_key = RESEND_API_KEY if api_key is None else api_key
        self.sender = sender or RESEND_FROM_EMAIL
        self.timeout = timeout

    @http_retry()
    def send(self, to: List[str], subject: str, html: str) -> str | None:
        if not self.api_key:
            logger.info(f"[EMAIL disabled] to={to} subject={subject!r}")
            return None

        resp = requests.post(
            RESEND_URL,
            json={"from": self.sender, "to": to, "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        message_id = resp.json().get("id")
        logger.info(f"Email {message_id} sent to {to}")
        return message_id


@lru_cache
def get_email_client() -> EmailClient:
    return EmailClient()
