from __future__ import annotations

from app.config import (
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_CLOUD_NAME,
    UPLOAD_FOLDER_ROOT,
)

_IMAGE_PREFIX = "image/"
_VIDEO_PREFIX = "video/"

# Global variable to store the Cloudinary store instance
_media_store = None


def get_media_store():
    """Lazily initialize the Cloudinary store."""
    global _media_store
    if _media_store is None:
        from app.services.cloudinary_store import CloudinaryStore

        _media_store = CloudinaryStore(
            cloud_name=CLOUDINARY_CLOUD_NAME,
            api_key=CLOUDINARY_API_KEY,
            api_secret=CLOUDINARY_API_SECRET,
        )
    return _media_store


def user_folder(user_id: str) -> str:
    return f"{UPLOAD_FOLDER_ROOT}/user_{user_id}" if UPLOAD_FOLDER_ROOT else f"user_{user_id}"


def requested_resource_type(content_type: str | None) -> str:
    """Cloudinary resource type to ask for, from the declared media type."""
    content_type = (content_type or "").lower()
    if content_type.startswith(_IMAGE_PREFIX):
        return "image"
    if content_type.startswith(_VIDEO_PREFIX):
        return "video"
    return "raw"


_RAW_FORMAT_TYPES = {
    "doc": "document",
    "docx": "document",
    "txt": "document",
    "xls": "spreadsheet",
    "xlsx": "spreadsheet",
    "csv": "spreadsheet",
    "ppt": "presentation",
    "pptx": "presentation",
}


def classify_file(filename: str | None, fmt: str | None, resource_type: str | None) -> str:
    """Logical type shown in the dashboard for an uploaded asset."""
    fmt = (fmt or "").lower()
    if (filename or "").lower().endswith(".pdf") or fmt == "pdf":
        return "document"
    if resource_type in ("image", "video"):
        return resource_type
    if resource_type == "raw" and fmt in _RAW_FORMAT_TYPES:
        return _RAW_FORMAT_TYPES[fmt]
    return fmt or "file"


def human_bytes(value: int | None) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(max(value or 0, 0))
    for unit in units:
        if size < 1024 or unit == units[-1]:
            formatted = f"{size:.1f}".rstrip("0").rstrip(".")
            return f"{formatted or '0'} {unit}"
        size /= 1024
    return "0 B"
