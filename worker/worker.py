import os, logging
from celery import Celery
from minio import Minio
from minio.error import S3Error

REDIS_URL = os.environ.get("REDIS_URL", "redis://redis:6379/0")
QUEUE = os.environ.get("WORKER_QUEUE", "casedocs")
MINIO_ENDPOINT = os.environ.get("MINIO_ENDPOINT", "minio:9000")
MINIO_ACCESS_KEY = os.environ.get("MINIO_ACCESS_KEY", "minioadmin")
MINIO_SECRET_KEY = os.environ.get("MINIO_SECRET_KEY", "minioadmin")
MINIO_BUCKET = os.environ.get("MINIO_BUCKET", "casedocs")
MINIO_SECURE = os.environ.get("MINIO_SECURE", "false").lower() in ("1", "true", "yes")

logger = logging.getLogger(__name__)

cel = Celery("casedocs", broker=REDIS_URL, backend=REDIS_URL)

minio = Minio(MINIO_ENDPOINT, access_key=MINIO_ACCESS_KEY, secret_key=MINIO_SECRET_KEY, secure=MINIO_SECURE)

def remove_object(key: str) -> bool:
    try:
        minio.remove_object(MINIO_BUCKET, key)
    except S3Error as exc:
        if exc.code == "NoSuchKey":
            return False
        raise
    return True

# Rendered PDFs whose document row never committed. The API deletes them
# inline when it can; this picks up the ones it could not reach.
@cel.task(name="purge_orphaned_pdf", queue=QUEUE, autoretry_for=(S3Error, ConnectionError), retry_backoff=True, max_retries=5)
def purge_orphaned_pdf(key: str):
    if not key.startswith("documents/"):
        logger.warning("Refusing to purge %s outside documents/", key)
        return {"key": key, "removed": False}
    removed = remove_object(key)
    logger.info("Purged %s (existed: %s)", key, removed)
    return {"key": key, "removed": removed}
