# app/services/images.py
import os
import time
from contextlib import asynccontextmanager
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import UploadFile
from loguru import logger
from PIL import Image, ImageOps, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.exceptions import AppError

USER_PHOTO_SIZE = (500, 500)
TOUR_IMAGE_SIZE = (2000, 1333)
JPEG_QUALITY = 90
MAX_TOUR_IMAGES = 3


class NotAnImage(AppError):
    kind = "NotAnImage"

    def __init__(self):
        super().__init__("Not an image! Please upload only images.", 400)


def image_filename(prefix: str, sid: str, suffix: Optional[str] = None) -> str:
    stamp = int(time.time() * 1000)
    parts = [prefix, sid, str(stamp)] + ([suffix] if suffix else [])
    return "-".join(parts) + ".jpeg"


def resize_image(data: bytes, size: Tuple[int, int], directory: str, filename: str) -> str:
    """Crops/resizes raw image bytes to `size`, writes a JPEG and returns the filename"""
    try:
        with Image.open(BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img).convert("RGB")
            resized = ImageOps.fit(img, size, method=Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError):
        raise NotAnImage()

    Path(directory).mkdir(parents=True, exist_ok=True)
    resized.save(os.path.join(directory, filename), format="JPEG", quality=JPEG_QUALITY)
    return filename


@asynccontextmanager
async def stored_images():
    """
    Collects the paths of images written inside the block and deletes them again
    when the block fails, so no persisted record points at a half-finished upload.
    """
    written: List[str] = []
    try:
        yield written
    except BaseException:
        for path in written:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        if written:
            logger.warning(f"Removed {len(written)} orphaned image(s) after a failed update")
        raise


async def save_upload(
        upload: UploadFile,
        size: Tuple[int, int],
        subdir: str,
        filename: str,
        written: List[str],
) -> str:
    if not (upload.content_type or "").startswith("image/"):
        raise NotAnImage()

    data = await upload.read()
    directory = os.path.join(settings.IMAGES_DIR, subdir)
    await run_in_threadpool(resize_image, data, size, directory, filename)
    written.append(os.path.join(directory, filename))
    return filename
