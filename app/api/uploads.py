"""File upload endpoint acting as the chat object store."""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, Request, UploadFile, status
from fastapi.responses import FileResponse

from app.core.storage import build_download_path, resolve_path, store_upload
from app.schemas import UploadRead

router = APIRouter(tags=["uploads"])

logger = logging.getLogger(__name__)


@router.post("/upload", response_model=UploadRead, status_code=status.HTTP_200_OK)
async def upload_file(request: Request, file: UploadFile = File(...)) -> UploadRead:
    """Store a blob and return the URL clients embed in file messages."""

    stored = await store_upload(file)
    url = str(request.base_url).rstrip("/") + build_download_path(stored.stored_name)
    logger.info(
        "Stored upload",
        extra={"stored_name": stored.stored_name, "size": stored.file_size},
    )
    return UploadRead(
        url=url,
        type=stored.content_type,
        mime_type=stored.content_type,
        size=stored.file_size,
    )


@router.get("/uploads/{stored_name}", response_class=FileResponse)
def download_file(stored_name: str) -> FileResponse:
    path = resolve_path(stored_name)
    return FileResponse(path)
