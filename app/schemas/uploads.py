"""Schemas related to uploaded files."""

from __future__ import annotations

from pydantic import BaseModel, Field


class UploadRead(BaseModel):
    """Reference to a stored blob, embedded by clients into file messages."""

    url: str = Field(..., description="Absolute URL serving the stored file")
    type: str = Field(..., description="MIME type reported for the upload")
    mime_type: str = Field(..., serialization_alias="mimeType")
    size: int = Field(..., ge=0, description="Stored size in bytes")
