"""
Image storage on Cloudinary.

Route handlers only see two operations: `upload_image` returns
`{"url", "public_id"}` for the stored file, `delete_image` removes it again.
"""
import logging
import os
from typing import BinaryIO, Dict, Iterable, Optional

import cloudinary
import cloudinary.uploader

logger = logging.getLogger(__name__)

CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "furniture-store")

cloudinary.config(
    cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
    api_key=os.getenv("CLOUDINARY_API_KEY"),
    api_secret=os.getenv("CLOUDINARY_API_SECRET"),
    secure=True,
)


def upload_image(file: BinaryIO, folder: str) -> Dict[str, str]:
    result = cloudinary.uploader.upload(
        file,
        folder=f"{CLOUDINARY_FOLDER}/{folder}",
        resource_type="image",
    )
    return {"url": result["secure_url"], "public_id": result["public_id"]}


def delete_image(public_id: str) -> None:
    cloudinary.uploader.destroy(public_id, resource_type="image")


def discard_images(public_ids: Iterable[Optional[str]]) -> None:
    """Best-effort removal; failures are logged and never raised."""
    for public_id in public_ids:
        if not public_id:
            continue
        try:
            delete_image(public_id)
        except Exception as exc:
            logger.warning("Failed to delete image %s: %s", public_id, exc)
