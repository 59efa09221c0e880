"""Celery application configuration"""

from celery import Celery
from kombu import Exchange, Queue
from storefront.core.config import settings

# Create Celery app
celery_app = Celery(
    "storefront",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "storefront.tasks.payment_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Task routing
    task_routes={
        "storefront.tasks.payment_tasks.*": {"queue": "payments"},
    },

    # Retry configuration
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    # Result backend configuration
    result_expires=3600,  # 1 hour
)

# Define queues
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("payments", Exchange("payments"), routing_key="payments"),
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "replay-unprocessed-webhook-events": {
        "task": "storefront.tasks.payment_tasks.replay_unprocessed_webhook_events",
        "schedule": settings.WEBHOOK_REPLAY_INTERVAL_SECONDS,
        "options": {"queue": "payments"}
    },
}
