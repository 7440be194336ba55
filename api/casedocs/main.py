import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .routers import templates, documents
from .config import ENCRYPTION_KEY, LOG_LEVEL
from .db import init_db
from .encryption import init_encryptor
from .exceptions import DocumentServiceError

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # a missing or malformed key stops startup here
    init_encryptor(ENCRYPTION_KEY)
    init_db()
    yield

app = FastAPI(title="Case Documents API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(DocumentServiceError)
async def handle_service_error(request: Request, exc: DocumentServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})

app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
app.include_router(documents.router, prefix="/api/documents", tags=["documents"])

@app.get("/")
def root():
    return {"ok": True, "service": "casedocs-api"}
