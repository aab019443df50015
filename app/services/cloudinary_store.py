from __future__ import annotations

import io
import logging
from typing import Any

import cloudinary
import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

logger = logging.getLogger("printshelf.cloudinary")


class MediaStoreError(RuntimeError):
    """Raised when the remote media host rejects or fails a call."""


class CloudinaryStore:
    """A thin wrapper around the Cloudinary SDK used to upload, list and delete assets."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        if not cloud_name or not api_key or not api_secret:
            raise ValueError(
                "CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET must be set"
            )
        self._cloud_name = cloud_name
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    def upload(self, data: bytes, folder: str, display_name: str, resource_type: str) -> dict[str, Any]:
        """Upload raw bytes and return Cloudinary's response (public_id, secure_url, bytes, ...)."""
        try:
            return cloudinary.uploader.upload(
                io.BytesIO(data),
                folder=folder,
                resource_type=resource_type,
                display_name=display_name,
            )
        except CloudinaryError as exc:
            raise MediaStoreError(f"Failed to upload '{display_name}' to Cloudinary: {exc}") from exc

    def delete(self, public_id: str, resource_type: str) -> str:
        """Destroy an asset; returns Cloudinary's result string ("ok", "not found", ...)."""
        try:
            response = cloudinary.uploader.destroy(public_id, resource_type=resource_type, invalidate=True)
        except CloudinaryError as exc:
            raise MediaStoreError(f"Failed to delete '{public_id}' from Cloudinary: {exc}") from exc
        return str(response.get("result", ""))

    def list_resources(
        self,
        prefix: str,
        resource_type: str = "image",
        limit: int = 20,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        """List uploaded assets under `prefix`, newest first, one provider page at a time."""
        options: dict[str, Any] = {
            "type": "upload",
            "resource_type": resource_type,
            "prefix": prefix,
            "max_results": limit,
            "direction": "desc",
        }
        if cursor:
            options["next_cursor"] = cursor
        try:
            return cloudinary.api.resources(**options)
        except CloudinaryError as exc:
            raise MediaStoreError(f"Failed to list Cloudinary folder '{prefix}': {exc}") from exc
