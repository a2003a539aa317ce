"""Helpers for reading uploaded image content."""

from typing import Any, Optional

from starlette.datastructures import UploadFile


def is_upload(value: Any) -> bool:
    """Return True when a form value is a file part rather than a plain field."""
    return isinstance(value, UploadFile)


async def read_image_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    """Read the bytes of an optional image part.

    Returns None when no file was sent or the part is empty (browsers send an
    empty part for an untouched file input).
    """
    if upload is None:
        return None
    try:
        data = await upload.read()
    finally:
        await upload.close()
    return data or None
