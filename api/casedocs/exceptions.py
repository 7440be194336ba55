"""
Errors raised by the template and document services.

Every error carries an HTTP status and a message that is safe to show to the
caller; ``main`` turns them into ``{"detail": message}`` responses.
"""
from typing import List, Optional


class DocumentServiceError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DocumentServiceError):
    """Rejected input. ``fields`` names the offending fields or placeholders."""
    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, fields: Optional[List[str]] = None):
        self.fields = list(fields or [])
        super().__init__(message)


class AuthenticationError(DocumentServiceError):
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(DocumentServiceError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(DocumentServiceError):
    status_code = 404
    default_message = "Not found"


class ConflictError(DocumentServiceError):
    status_code = 409
    default_message = "Conflict"


class InvalidTransitionError(ConflictError):
    """A lifecycle transition that would skip or regress a document status."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Document is {current}; cannot mark it {target}")


class RenderError(DocumentServiceError):
    status_code = 422
    default_message = "Failed to render document"


class TemplateCompileError(RenderError):
    default_message = "Failed to render template with case data"


class StorageError(DocumentServiceError):
    status_code = 502
    default_message = "Document storage is unavailable"


class EncryptionConfigError(DocumentServiceError):
    default_message = "ENCRYPTION_KEY must be 32 bytes, hex-encoded"


class DecryptionError(DocumentServiceError):
    default_message = "Stored values could not be decrypted"


class AuditWriteError(DocumentServiceError):
    default_message = "Failed to record document history"
