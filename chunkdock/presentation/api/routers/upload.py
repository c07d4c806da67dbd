"""
Chunked upload API router.

Chunk metadata travels in headers (``X-File-Name``, ``X-Chunk-Index``,
``X-Total-Chunks``, ``X-File-Id``), the destination directory in the
``path`` query parameter, and the chunk bytes as the raw request body.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi import status as http_status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ....core.exceptions import (
    AssemblyFailed, InvalidChunkRequest, MissingChunk, SessionNotFound,
    StagingNotFound, UploadError, WriteFailure
)
from ....core.interfaces.upload import ChunkMeta, ChunkResult
from ....infrastructure.config.models import ApplicationConfig
from ....infrastructure.services.upload.manager import UploadManager
from ..dependencies import get_config, get_upload_manager

logger = logging.getLogger(__name__)

router = APIRouter()


class UploadResponse(BaseModel):
    """Response body shared by all upload endpoints."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., description="Whether the request succeeded")
    status: str = Field(..., description="Outcome of the request")
    message: Optional[str] = Field(None, description="Human readable outcome")
    received: Optional[int] = Field(None, description="Chunks received so far")
    file_id: Optional[str] = Field(None, alias="fileId", description="Upload identifier")
    chunk_index: Optional[int] = Field(None, alias="chunkIndex", description="Chunk index")
    file_path: Optional[str] = Field(None, alias="filePath", description="Final file path")
    error: Optional[str] = Field(None, description="Error message if failed")
    should_restart: Optional[bool] = Field(
        None, alias="shouldRestart", description="Client must restart from chunk 0")

    def to_response(self, status_code: int = http_status.HTTP_200_OK) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=self.model_dump(by_alias=True, exclude_none=True)
        )


ERROR_STATUS: Dict[type, Any] = {
    SessionNotFound: (status.HTTP_400_BAD_REQUEST, "session_not_found"),
    StagingNotFound: (status.HTTP_404_NOT_FOUND, "session_not_found"),
    MissingChunk: (status.HTTP_400_BAD_REQUEST, "missing_chunk"),
    InvalidChunkRequest: (status.HTTP_400_BAD_REQUEST, "invalid_request"),
    WriteFailure: (status.HTTP_500_INTERNAL_SERVER_ERROR, "write_failed"),
    AssemblyFailed: (status.HTTP_500_INTERNAL_SERVER_ERROR, "assembly_failed"),
}


async def upload_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate upload errors into JSON responses."""
    if not isinstance(exc, UploadError):
        raise exc
    status_code, outcome = ERROR_STATUS.get(
        type(exc), (status.HTTP_500_INTERNAL_SERVER_ERROR, "error"))

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")

    return UploadResponse(
        success=False,
        status=outcome,
        error=exc.message,
        should_restart=True if isinstance(exc, SessionNotFound) else None,
    ).to_response(status_code)


def _parse_int(value: Optional[str], default: int, header: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidChunkRequest(f"Invalid {header} header: {value!r}")


def _chunk_meta(
    config: ApplicationConfig,
    file_name: Optional[str],
    chunk_index: Optional[str],
    total_chunks: Optional[str],
    file_id: Optional[str],
    path: Optional[str]
) -> ChunkMeta:
    return ChunkMeta(
        upload_id=file_id or uuid.uuid4().hex,
        file_name=unquote(file_name or ""),
        chunk_index=_parse_int(chunk_index, 0, "X-Chunk-Index"),
        total_chunks=_parse_int(total_chunks, 1, "X-Total-Chunks"),
        target_directory=path or config.upload.default_target_directory,
    )


def _chunk_response(result: ChunkResult) -> JSONResponse:
    return UploadResponse(
        success=True,
        status=result.status.value,
        message=result.message,
        received=result.received if result.file_path is None else None,
        file_id=result.upload_id if result.file_path is None else None,
        file_path=result.file_path,
    ).to_response()


@router.post("/upload-chunk")
async def upload_chunk(
    request: Request,
    path: Optional[str] = Query(None, description="Destination directory"),
    file_name: Optional[str] = Header(None, alias="X-File-Name"),
    chunk_index: Optional[str] = Header(None, alias="X-Chunk-Index"),
    total_chunks: Optional[str] = Header(None, alias="X-Total-Chunks"),
    file_id: Optional[str] = Header(None, alias="X-File-Id"),
    config: ApplicationConfig = Depends(get_config),
    manager: UploadManager = Depends(get_upload_manager)
) -> JSONResponse:
    """Append one chunk of a streamed upload to its destination file."""
    meta = _chunk_meta(config, file_name, chunk_index, total_chunks, file_id, path)
    data = await request.body()

    result = await manager.submit_chunk(meta, data)
    return _chunk_response(result)


@router.post("/upload-chunk/stage")
async def stage_chunk(
    request: Request,
    path: Optional[str] = Query(None, description="Destination directory"),
    file_name: Optional[str] = Header(None, alias="X-File-Name"),
    chunk_index: Optional[str] = Header(None, alias="X-Chunk-Index"),
    total_chunks: Optional[str] = Header(None, alias="X-Total-Chunks"),
    file_id: Optional[str] = Header(None, alias="X-File-Id"),
    config: ApplicationConfig = Depends(get_config),
    manager: UploadManager = Depends(get_upload_manager)
) -> JSONResponse:
    """Persist one chunk to the staging area for later assembly."""
    meta = _chunk_meta(config, file_name, chunk_index, total_chunks, file_id, path)
    data = await request.body()

    result = await manager.stage_chunk(meta, data)
    return UploadResponse(
        success=True,
        status=result.status.value,
        message=result.message,
        received=result.received,
        file_id=result.upload_id,
        chunk_index=result.chunk_index,
    ).to_response()


@router.post("/combine-chunks")
async def combine_chunks(
    path: Optional[str] = Query(None, description="Destination directory"),
    file_name: Optional[str] = Header(None, alias="X-File-Name"),
    total_chunks: Optional[str] = Header(None, alias="X-Total-Chunks"),
    file_id: Optional[str] = Header(None, alias="X-File-Id"),
    config: ApplicationConfig = Depends(get_config),
    manager: UploadManager = Depends(get_upload_manager)
) -> JSONResponse:
    """Assemble staged chunks into the destination file."""
    result = await manager.combine_chunks(
        upload_id=file_id or "",
        file_name=unquote(file_name or ""),
        total_chunks=_parse_int(total_chunks, 0, "X-Total-Chunks"),
        target_directory=path or config.upload.default_target_directory,
    )
    return _chunk_response(result)


@router.get("/uploads")
async def list_uploads(
    manager: UploadManager = Depends(get_upload_manager)
) -> List[Dict[str, Any]]:
    """List live streamed upload sessions."""
    return manager.list_sessions()


@router.get("/uploads/{upload_id}")
async def get_upload(
    upload_id: str,
    manager: UploadManager = Depends(get_upload_manager)
) -> Dict[str, Any]:
    """Get the state of one live upload session."""
    info = manager.get_session_info(upload_id)
    if info is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload session not found: {upload_id}"
        )
    return info
