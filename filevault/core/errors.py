"""
Error taxonomy shared by the upload pipeline and the HTTP boundary.

Every error carries the HTTP status the boundary should answer with and a
small context dict (stage, tier, path) used when logging.
"""

from typing import Any, Dict, Optional


class FileVaultError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ValidationError(FileVaultError):
    """Bad, missing or oversized input. Always user-correctable."""
    status_code = 400


class MediaProbeError(FileVaultError):
    """Unreadable or corrupt media."""
    status_code = 400


class TranscodeError(FileVaultError):
    status_code = 500


class UploadError(FileVaultError):
    """Remote store transport, auth or quota failure."""
    status_code = 500


class RemoteDeleteError(UploadError):
    pass


class PipelineError(FileVaultError):
    """Internal invariant violation inside the upload pipeline."""
    status_code = 500


class NotFoundError(FileVaultError):
    status_code = 404


class AuthenticationError(FileVaultError):
    status_code = 401


class UnsupportedMediaTypeError(FileVaultError):
    status_code = 415


class WorkspaceError(OSError):
    """A scratch directory could not be created."""
