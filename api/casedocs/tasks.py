import logging
from celery import Celery
from .config import REDIS_URL, WORKER_QUEUE

logger = logging.getLogger(__name__)

# Producer side only; the tasks themselves live in worker/worker.py.
cel = Celery("casedocs", broker=REDIS_URL, backend=REDIS_URL)

def enqueue_blob_purge(key: str):
    cel.send_task("purge_orphaned_pdf", args=[key], queue=WORKER_QUEUE)
    logger.info("Queued purge of orphaned PDF %s", key)
