"""Image processing utilities for preview normalisation."""

from __future__ import annotations

import io

import imagehash
from PIL import Image, ImageOps

# Perceptual hash of a uniform image; what blank or corrupt downloads hash to.
BLANK_IMAGE_HASH = "0000000000000000"


def image_from_bytes(data: bytes) -> Image.Image:
    """Create a PIL Image from raw bytes, forcing a full decode."""
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def get_image_dimensions(image: Image.Image) -> tuple[int, int]:
    """Get width and height of an image."""
    return image.size


def is_valid_preview_size(image: Image.Image, min_size: int = 16) -> bool:
    """Tracking pixels and spacer GIFs are not previews."""
    width, height = get_image_dimensions(image)
    return width >= min_size and height >= min_size


def compute_perceptual_hash(image: Image.Image) -> str:
    """Compute perceptual hash (pHash) for an image."""
    return str(imagehash.phash(image))


def is_blank_image(image: Image.Image) -> bool:
    """True for single-color images, which carry no preview information."""
    extrema = image.convert("L").getextrema()
    if extrema[0] == extrema[1]:
        return True
    return compute_perceptual_hash(image) == BLANK_IMAGE_HASH


def resize_image(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Resize image to fit within max dimensions while preserving aspect ratio."""
    image.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    return image


def encode_jpeg(image: Image.Image, quality: int = 85) -> bytes:
    """Encode as baseline RGB JPEG; transparency is flattened onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        image = background
    elif image.mode != "RGB":
        image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def normalize_to_jpeg(
    data: bytes,
    max_dimension: int = 1600,
    quality: int = 85,
    reject_blank: bool = True,
) -> bytes:
    """Decode arbitrary image bytes and re-encode as a bounded-size JPEG.

    Raises ValueError for images too small to serve as a preview, or blank
    ones when reject_blank is set, and PIL's UnidentifiedImageError (an
    OSError) for undecodable bytes.
    """
    image = image_from_bytes(data)
    if getattr(image, "n_frames", 1) > 1:
        image.seek(0)
    image = ImageOps.exif_transpose(image) or image

    if not is_valid_preview_size(image):
        width, height = get_image_dimensions(image)
        msg = f"image too small for a preview: {width}x{height}"
        raise ValueError(msg)
    if reject_blank and is_blank_image(image):
        msg = "image is blank"
        raise ValueError(msg)

    resized = resize_image(image.copy(), max_width=max_dimension, max_height=max_dimension)
    return encode_jpeg(resized, quality=quality)
