"""
Upload error taxonomy.

Every per-request failure of the chunked upload core is raised as one of
these exceptions; the HTTP layer turns them into JSON error responses.
A retransmitted chunk is not an error and has no exception here.
"""

from typing import Any, Dict, Optional


class UploadError(Exception):
    """Base exception for upload failures."""

    code = "UPLOAD_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidChunkRequest(UploadError):
    """Chunk metadata is missing or malformed."""

    code = "INVALID_CHUNK_REQUEST"


class SessionNotFound(UploadError):
    """
    No live session exists for the upload identifier.

    Raised for a non-zero chunk index without a prior chunk 0, or when the
    session expired while the request was in flight. The client should
    restart the upload from chunk 0.
    """

    code = "SESSION_NOT_FOUND"
    should_restart = True

    def __init__(self, upload_id: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or (
                "Upload session not found. The upload may have expired or "
                "the first chunk was not received."
            ),
            {"upload_id": upload_id},
        )
        self.upload_id = upload_id


class StagingNotFound(UploadError):
    """The staging directory for a store-and-assemble upload does not exist."""

    code = "STAGING_NOT_FOUND"

    def __init__(self, upload_id: str) -> None:
        super().__init__("Upload session not found", {"upload_id": upload_id})
        self.upload_id = upload_id


class MissingChunk(UploadError):
    """A chunk file needed for assembly is absent from the staging directory."""

    code = "MISSING_CHUNK"

    def __init__(self, index: int) -> None:
        super().__init__(f"Missing chunk {index}", {"chunk_index": index})
        self.index = index


class WriteFailure(UploadError):
    """Writing to an output sink or chunk file failed."""

    code = "WRITE_FAILURE"


class AssemblyFailed(UploadError):
    """
    Reading or writing failed part way through chunk-store assembly.

    The partially written output file is left in place.
    """

    code = "ASSEMBLY_FAILED"
