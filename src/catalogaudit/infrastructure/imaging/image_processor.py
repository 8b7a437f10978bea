"""Image decoding, resizing and format conversion with Pillow.

Everything here is synchronous and CPU-bound. Async callers wrap the calls in
asyncio.to_thread() so the event loop keeps serving requests.
"""

import logging
from io import BytesIO
from pathlib import Path

from PIL import Image as PILImage

logger = logging.getLogger(__name__)

FORMAT_JPEG = "jpeg"
FORMAT_PNG = "png"
FORMAT_WEBP = "webp"

DEFAULT_JPEG_QUALITY = 85
DEFAULT_ALPHA_THRESHOLD = 128

# (left, top, right, bottom), right/bottom exclusive like PIL boxes
Box = tuple[int, int, int, int]


def detect_format(data: bytes) -> str:
    """Identify the image format from its magic bytes.

    Raises:
        ValueError: If the data is not JPEG, PNG or WebP
    """
    if data[:3] == b"\xff\xd8\xff":
        return FORMAT_JPEG
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return FORMAT_PNG
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return FORMAT_WEBP
    raise ValueError("unrecognized image format")


def extension_for_format(image_format: str) -> str:
    return ".png" if image_format == FORMAT_PNG else ".jpg"


def get_dimensions(data: bytes) -> tuple[int, int]:
    """Read width and height from the image header without decoding pixels."""
    with PILImage.open(BytesIO(data)) as img:
        return img.size


def get_file_dimensions(path: str | Path) -> tuple[int, int]:
    with PILImage.open(path) as img:
        return img.size


def fit_dimensions(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale (width, height) down to fit the bounds, keeping the aspect ratio. Never upscales."""
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def _encode(img: PILImage.Image, image_format: str, quality: int) -> bytes:
    output = BytesIO()
    if image_format == FORMAT_PNG:
        img.save(output, format="PNG", optimize=True)
    else:
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(output, format="JPEG", quality=quality, optimize=True)
    return output.getvalue()


def resize_to_fit(
    data: bytes,
    max_width: int,
    max_height: int,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> tuple[bytes, str]:
    """Fit the image within max_width x max_height and re-encode it.

    WebP input comes out as PNG; JPEG and PNG keep their format.

    Returns:
        (encoded bytes, output format)
    """
    image_format = detect_format(data)
    out_format = FORMAT_PNG if image_format == FORMAT_WEBP else image_format

    with PILImage.open(BytesIO(data)) as img:
        img.load()
        if img.width > max_width or img.height > max_height:
            img.thumbnail((max_width, max_height), PILImage.Resampling.LANCZOS)
            logger.debug("Resized image to %s", img.size)
        return _encode(img, out_format, quality), out_format


def convert_to_png(data: bytes) -> bytes:
    """Re-encode any decodable image as PNG, keeping transparency."""
    with PILImage.open(BytesIO(data)) as img:
        img.load()
        if img.mode not in ("RGB", "RGBA", "L", "LA"):
            img = img.convert("RGBA")
        return _encode(img, FORMAT_PNG, DEFAULT_JPEG_QUALITY)


def validate_aspect_ratio(width: int, height: int, expected: float, tolerance: float) -> bool:
    """True when |w/h - expected| / expected <= tolerance."""
    if height == 0 or expected == 0:
        return False
    actual = width / height
    return abs(actual - expected) / expected <= tolerance


def trim_alpha_bounds(
    data: bytes, threshold: int = DEFAULT_ALPHA_THRESHOLD
) -> tuple[Box, Box]:
    """Bounding box of the visible content of a PNG.

    A pixel is visible when its alpha is above threshold. Non-PNG images and
    images without any visible pixel report content == original.

    Returns:
        (content box, original box)
    """
    image_format = detect_format(data)
    with PILImage.open(BytesIO(data)) as img:
        original: Box = (0, 0, img.width, img.height)
        if image_format != FORMAT_PNG:
            return original, original

        alpha = img.convert("RGBA").getchannel("A")
        visible = alpha.point(lambda a: 255 if a > threshold else 0)
        bbox = visible.getbbox()
        if bbox is None:
            return original, original
        return bbox, original


def trim_alpha(
    data: bytes, threshold: int = DEFAULT_ALPHA_THRESHOLD
) -> tuple[bytes, tuple[int, int], tuple[int, int]]:
    """Crop transparent padding from a PNG.

    Returns:
        (PNG bytes, original (w, h), trimmed (w, h))
    """
    content, original = trim_alpha_bounds(data, threshold)
    original_size = (original[2] - original[0], original[3] - original[1])
    with PILImage.open(BytesIO(data)) as img:
        img.load()
        cropped = img.crop(content) if content != original else img
        trimmed_size = cropped.size
        if cropped.mode not in ("RGBA", "LA"):
            cropped = cropped.convert("RGBA")
        return _encode(cropped, FORMAT_PNG, DEFAULT_JPEG_QUALITY), original_size, trimmed_size
