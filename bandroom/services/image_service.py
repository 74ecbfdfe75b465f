"""
Image processing for avatars and session photos.

Validates uploads (size, type, decodability), converts to RGB and re-encodes
as JPEG. Avatars are center-cropped to a square; session photos keep their
aspect ratio and are bounded by MAX_PHOTO_DIMENSION.
"""

import logging
from io import BytesIO

from PIL import Image

logger = logging.getLogger(__name__)

# Validation constants
MAX_AVATAR_BYTES = 5 * 1024 * 1024  # 5MB
MAX_PHOTO_BYTES = 10 * 1024 * 1024  # 10MB
MAX_IMAGE_PIXELS = 25_000_000  # 25MP
AVATAR_SIZE = 512
MAX_PHOTO_DIMENSION = 1600
JPEG_QUALITY = 85
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}

# Pillow's built-in decompression bomb guard
Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS


def _open_image(file_bytes: bytes, content_type: str, max_bytes: int) -> Image.Image:
    """
    Validate and decode an uploaded image.

    Raises:
        ValueError: If the file is too large, the wrong type, or corrupted
    """
    if len(file_bytes) > max_bytes:
        raise ValueError(f"File size exceeds maximum of {max_bytes // (1024 * 1024)}MB")

    if not content_type or content_type not in ALLOWED_CONTENT_TYPES:
        raise ValueError(f"Invalid file type '{content_type}'. Allowed: JPEG, PNG, WebP, HEIC")

    try:
        img = Image.open(BytesIO(file_bytes))
        img.load()  # Force full decode to catch corrupted files
    except Image.DecompressionBombError:
        raise ValueError("Image dimensions too large")
    except Exception as e:
        raise ValueError(f"Invalid or corrupted image: {e}")
    return img


def _to_rgb(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "P", "LA"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode_jpeg(img: Image.Image) -> bytes:
    output = BytesIO()
    img.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return output.getvalue()


def process_avatar(file_bytes: bytes, content_type: str) -> bytes:
    """
    Validate an avatar and return a 512x512 center-cropped JPEG.

    Raises:
        ValueError: If the upload is invalid
    """
    img = _to_rgb(_open_image(file_bytes, content_type, MAX_AVATAR_BYTES))

    width, height = img.size
    if width != height:
        side = min(width, height)
        left = (width - side) // 2
        top = (height - side) // 2
        img = img.crop((left, top, left + side, top + side))

    if img.size != (AVATAR_SIZE, AVATAR_SIZE):
        img = img.resize((AVATAR_SIZE, AVATAR_SIZE), Image.Resampling.LANCZOS)

    return _encode_jpeg(img)


def process_session_photo(file_bytes: bytes, content_type: str) -> bytes:
    """
    Validate a session photo, bound its longest side and return JPEG bytes.

    Raises:
        ValueError: If the upload is invalid
    """
    img = _to_rgb(_open_image(file_bytes, content_type, MAX_PHOTO_BYTES))

    w, h = img.size
    if w > MAX_PHOTO_DIMENSION or h > MAX_PHOTO_DIMENSION:
        ratio = MAX_PHOTO_DIMENSION / max(w, h)
        img = img.resize((int(w * ratio), int(h * ratio)), Image.Resampling.LANCZOS)

    return _encode_jpeg(img)
