"""
Image preprocessing for vision requests.

Shelf photos straight from a phone are large; they are fitted inside a
bounding box (never enlarged) and recompressed as JPEG before upload.
"""

import hashlib
import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError


@dataclass
class PreprocessConfig:
    max_dimension: int = 1568
    jpeg_quality: int = 80
    max_file_size: int = 20 * 1024 * 1024


class ImageTooLargeError(ValueError):
    pass


class InvalidImageError(ValueError):
    pass


def hash_image(data: bytes) -> str:
    """Content address for deduplicated storage."""
    return hashlib.sha256(data).hexdigest()


def prepare_image(data: bytes, config: Optional[PreprocessConfig] = None) -> bytes:
    """
    Downscale and recompress an uploaded image.

    Args:
        data: Original image bytes
        config: Size and quality limits

    Returns:
        JPEG bytes no larger than max_dimension on either side

    Raises:
        ImageTooLargeError: Upload exceeds max_file_size
        InvalidImageError: Bytes are not a readable image
    """
    config = config or PreprocessConfig()
    if len(data) > config.max_file_size:
        raise ImageTooLargeError(
            f"Image exceeds {config.max_file_size // (1024 * 1024)}MB limit"
        )

    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Could not read image: {e}") from e

    if image.mode != "RGB":
        image = image.convert("RGB")

    # thumbnail() keeps aspect ratio and never enlarges
    image.thumbnail((config.max_dimension, config.max_dimension), Image.LANCZOS)

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=config.jpeg_quality)
    return buffer.getvalue()
