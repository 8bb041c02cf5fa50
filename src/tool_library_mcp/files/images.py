"""
Image optimisation for uploaded photos.

JPEG, PNG and WebP uploads are re-encoded with Pillow: scaled down to a
maximum width, saved at a fixed quality, with EXIF and other metadata
dropped. Other content types are stored untouched.
"""

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from ..database.errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


def is_optimizable(content_type: str) -> bool:
    return content_type in IMAGE_FORMATS


def optimize_image(data: bytes, content_type: str, max_width: int, quality: int) -> bytes:
    """
    Resize and re-encode an image.

    Raises:
        ValidationError: If the bytes are not a readable image
    """
    image_format = IMAGE_FORMATS[content_type]
    try:
        with Image.open(io.BytesIO(data)) as source:
            # Apply the camera orientation before the EXIF block is dropped
            image = ImageOps.exif_transpose(source)
            if image.width > max_width:
                height = max(1, round(image.height * max_width / image.width))
                image = image.resize((max_width, height), Image.Resampling.LANCZOS)

            if image_format == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")

            # A fresh image carries pixels only, no info/exif/icc
            clean = Image.new(image.mode, image.size)
            clean.paste(image)
            if image.mode == "P":
                clean.putpalette(image.getpalette())

            out = io.BytesIO()
            if image_format == "PNG":
                clean.save(out, format="PNG", optimize=True)
            else:
                clean.save(out, format=image_format, quality=quality)
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Uploaded file is not a valid image: {e}", field="file") from e

    optimized = out.getvalue()
    logger.debug("Optimised %s image: %d -> %d bytes", image_format, len(data), len(optimized))
    return optimized
