# numbershop/celery_worker.py
from celery import Celery

from numbershop.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, PROVISIONING_POLL_SECONDS

celery_app = Celery(
    "numbershop",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski musza byc zaimportowane, zeby worker je zarejestrowal
celery_app.conf.imports = (
    "numbershop.tasks.provisioning",
    "numbershop.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "drain-provisioning-queue": {
        "task": "numbershop.tasks.provisioning.drain_provisioning_queue_task",
        "schedule": PROVISIONING_POLL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
