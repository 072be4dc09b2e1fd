"""
Celery configuration for background tasks
"""
from celery import Celery
from billing.core.config import settings
import logging

logger = logging.getLogger(__name__)

redis_url = settings.redis_url

# Create Celery instance
celery_app = Celery(
    "billing",
    broker=redis_url,
    backend=redis_url,
    include=[
        "billing.modules.notifications.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,  # 5 minutes
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Result backend settings
    result_expires=3600,  # 1 hour

    # Publicar desde la API no debe colgar la respuesta si el broker no está
    broker_connection_timeout=2,
    task_publish_retry_policy={"max_retries": 1, "interval_start": 0, "interval_step": 0.5},

    # Task routes for different queues
    task_routes={
        "billing.modules.notifications.tasks.*": {"queue": "notifications"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "sweep-low-stock-products": {
            "task": "billing.modules.notifications.tasks.sweep_low_stock_products",
            "schedule": settings.LOW_STOCK_SWEEP_INTERVAL_SECONDS,
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
