from worker.celery_app import celery


def enqueue_import(run_id: str) -> None:
    celery.send_task("worker.tasks.run_import", args=[run_id], queue="imports")
