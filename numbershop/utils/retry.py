# numbershop/utils/retry.py
import logging

import redis
import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from numbershop.utils.logging import get_logger

_logger = get_logger(__name__)

# 429 i 5xx moga przejsc przy kolejnej probie, reszta 4xx nie
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _transient_http(exc: BaseException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code in RETRYABLE_STATUS
    return False


# tylko dla operacji idempotentnych (GET, wysylka maila)
# zamowienie numeru u operatora NIE moze byc ponawiane na slepo
def http_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(_transient_http),
        before_sleep=before_sleep_log(_logger, logging.WARNING),
    )


def redis_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
        before_sleep=before_sleep_log(_logger, logging.WARNING),
    )
