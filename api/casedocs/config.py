
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./casedocs.db")
MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "minio:9000")
MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "minioadmin")
MINIO_BUCKET = os.getenv("MINIO_BUCKET", "casedocs")
MINIO_SECURE = os.getenv("MINIO_SECURE", "false").lower() in ("1", "true", "yes")
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", f"http://{MINIO_ENDPOINT}")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
# 32 bytes, hex-encoded
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
WORKER_QUEUE = os.getenv("WORKER_QUEUE", "casedocs")
RENDER_TIMEOUT_SECONDS = float(os.getenv("RENDER_TIMEOUT_SECONDS", "30"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
