from celery.signals import setup_logging

from busline.core.log import configure_logging
from busline.tasks.celery_app import celery
from busline.tasks import worker_jobs


@setup_logging.connect
def _setup_logging(**kwargs):
    configure_logging()


@celery.task(name="busline.tasks.jobs.dispatch_notifications")
def dispatch_notifications(limit: int = 50):
    return worker_jobs.dispatch_notifications(limit=limit)
