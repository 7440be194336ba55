from minio import Minio
from minio.error import S3Error
from .config import MINIO_ENDPOINT, MINIO_ACCESS_KEY, MINIO_SECRET_KEY, MINIO_BUCKET, MINIO_SECURE, STORAGE_PUBLIC_URL
import io

_client = Minio(
    MINIO_ENDPOINT,
    access_key=MINIO_ACCESS_KEY,
    secret_key=MINIO_SECRET_KEY,
    secure=MINIO_SECURE
)

def ensure_bucket():
    if not _client.bucket_exists(MINIO_BUCKET):
        _client.make_bucket(MINIO_BUCKET)

def put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
    ensure_bucket()
    _client.put_object(MINIO_BUCKET, key, io.BytesIO(data), length=len(data), content_type=content_type)

def get_bytes(key: str) -> bytes:
    resp = _client.get_object(MINIO_BUCKET, key)
    try:
        return resp.read()
    finally:
        resp.close()
        resp.release_conn()

def delete_object(key: str):
    try:
        _client.remove_object(MINIO_BUCKET, key)
    except S3Error as exc:
        if exc.code != "NoSuchKey":
            raise

def object_url(key: str) -> str:
    return f"{STORAGE_PUBLIC_URL.rstrip('/')}/{MINIO_BUCKET}/{key}"

def upload_pdf(key: str, data: bytes) -> str:
    put_bytes(key, data, content_type="application/pdf")
    return object_url(key)
