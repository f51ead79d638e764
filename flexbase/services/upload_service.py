import logging
import uuid
from pathlib import Path
from typing import Tuple

from PIL import UnidentifiedImageError
from fastapi import UploadFile, HTTPException, status

from flexbase.config import config
from flexbase.utils.files import (
    FileTooLargeError, delete_file, read_file_from_upload_file, verify_image_bytes, write_file_bytes
)
from flexbase.utils.types import MediaType

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/uploads"
POSTS_DIR = "posts"
ALLOWED_EXTENSIONS = {"jpeg", "jpg", "png", "gif", "mp4", "mov"}


class UploadService:
    @staticmethod
    def media_type_for(content_type: str) -> MediaType:
        return MediaType.VIDEO if content_type.startswith("video/") else MediaType.IMAGE

    @staticmethod
    def path_for_url(media_url: str) -> Path:
        relative = media_url.removeprefix(MEDIA_URL_PREFIX).lstrip("/")
        return config.STORAGE_PATH / relative

    @classmethod
    async def store_media(cls, file: UploadFile) -> Tuple[str, MediaType]:
        """Validate and persist an uploaded post media file.

        Returns the public URL of the stored file and its media kind.
        """
        suffix = Path(file.filename or "").suffix.lower().lstrip(".")
        if suffix not in ALLOWED_EXTENSIONS or file.content_type not in config.ALLOWED_MIME_TYPES:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                "Invalid file type. Only images and videos are allowed."
            )

        try:
            data = await read_file_from_upload_file(file, config.MAX_FILE_SIZE)
        except FileTooLargeError:
            raise HTTPException(status.HTTP_413_CONTENT_TOO_LARGE, "File too large.")

        media_type = cls.media_type_for(file.content_type)
        if media_type is MediaType.IMAGE:
            try:
                await verify_image_bytes(data)
            except (UnidentifiedImageError, OSError, SyntaxError) as e:
                raise HTTPException(
                    status.HTTP_400_BAD_REQUEST,
                    "Failed to read image. The file may be corrupted."
                ) from e

        stored_filename = f"{uuid.uuid4()}.{suffix}"
        await write_file_bytes(data, config.STORAGE_PATH / POSTS_DIR / stored_filename)

        return f"{MEDIA_URL_PREFIX}/{POSTS_DIR}/{stored_filename}", media_type

    @classmethod
    async def discard_media(cls, media_url: str) -> None:
        if not await delete_file(cls.path_for_url(media_url)):
            logger.warning("Could not delete stored media %s", media_url)
