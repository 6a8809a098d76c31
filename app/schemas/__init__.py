"""Pydantic schemas exposed by the HTTP API."""

from .uploads import UploadRead

__all__ = ["UploadRead"]
