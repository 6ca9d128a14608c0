"""
image_intake.py — Project image: Telegram photo → bytes → storage bucket.

Telegram sends every photo in several sizes, smallest first; the last
one is the original resolution and is the one we keep.
"""

from __future__ import annotations

import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Sequence
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError
from telegram import Bot, PhotoSize
from telegram.error import TelegramError

from .errors import UploadError
from .storage import ProjectRepository

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass
class UploadedImage:
    filename: str
    content_type: str
    storage_path: str


# ── Helpers ───────────────────────────────────────────────────────────────────

def largest_photo(photo_sizes: Sequence[PhotoSize]) -> PhotoSize:
    if not photo_sizes:
        raise UploadError("message has no photo sizes")
    return photo_sizes[-1]


def file_extension(file_path: str) -> str:
    """'photos/file_12.PNG' → 'png'; no suffix → 'jpg'."""
    suffix = PurePosixPath(urlparse(file_path).path).suffix
    return suffix.lstrip(".").lower() or DEFAULT_EXTENSION


def content_type_for(extension: str) -> str:
    guessed, _ = mimetypes.guess_type(f"image.{extension}")
    return guessed or DEFAULT_CONTENT_TYPE


def verify_image(data: bytes) -> None:
    """Raise UploadError unless ``data`` decodes as an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UploadError(f"downloaded file is not an image: {e}") from e


# ── Intake ────────────────────────────────────────────────────────────────────

class ImageIntake:
    """Downloads the largest variant of a photo and stores it as ``{slug}.{ext}``."""

    def __init__(self, bot: Bot, repository: ProjectRepository) -> None:
        self.bot = bot
        self.repository = repository

    async def upload(self, photo_sizes: Sequence[PhotoSize], slug: str) -> UploadedImage:
        photo = largest_photo(photo_sizes)
        try:
            tg_file = await self.bot.get_file(photo.file_id)
        except TelegramError as e:
            raise UploadError(f"could not resolve file {photo.file_id}: {e}") from e

        if not tg_file.file_path:
            raise UploadError("No file path found in the image.")

        # file_path is the full file-hosting URL (keyed by the bot token)
        try:
            data = bytes(await tg_file.download_as_bytearray())
        except TelegramError as e:
            raise UploadError(f"network error while downloading image: {e}") from e
        verify_image(data)

        extension = file_extension(tg_file.file_path)
        filename = f"{slug}.{extension}"
        content_type = content_type_for(extension)

        storage_path = await self.repository.upload_avatar(filename, data, content_type)
        logger.info(f"Stored image {filename} ({content_type}, {len(data)} bytes) at {storage_path}")
        return UploadedImage(filename=filename, content_type=content_type, storage_path=storage_path)
