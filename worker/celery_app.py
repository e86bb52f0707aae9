from celery import Celery
from celery.schedules import crontab

from pimsync.core.config import settings

celery = Celery(
    "pimsync-worker",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["worker.tasks", "worker.dispatcher"],
)

celery.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    timezone="UTC",
    task_routes={
        "worker.tasks.run_import": {"queue": "imports"},
        "worker.tasks.schedule_nightly_import": {"queue": "default"},
        "worker.dispatcher.requeue_stale_imports": {"queue": "default"},
    },
    beat_schedule={
        "nightly-import": {
            "task": "worker.tasks.schedule_nightly_import",
            "schedule": crontab(hour=settings.nightly_cron_hour, minute=0),
        },
        "requeue-stale-imports": {
            "task": "worker.dispatcher.requeue_stale_imports",
            "schedule": 300.0,
        },
    },
)
