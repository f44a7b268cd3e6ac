"""
Fixed-quality image operations for the convert and resize endpoints.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps

from imagehub.compression.codec import ImageCodec
from imagehub.utils.validation import ResizeOptions


PAD_COLOR = (255, 255, 255, 0)


@dataclass(frozen=True)
class ProcessedImage:
    data: bytes
    format: str
    original_dimensions: Tuple[int, int]
    dimensions: Tuple[int, int]


def convert_image(image_bytes: bytes, output_format: str, quality: int,
                  codec: Optional[ImageCodec] = None) -> ProcessedImage:
    """
    Re-encodes an image into another format at a fixed quality.

    Args:
        image_bytes: Original image bytes
        output_format: Target format name
        quality: Encoder quality (ignored by formats without one)
        codec: Codec to use (a default ImageCodec if omitted)

    Returns:
        ProcessedImage with the encoded bytes
    """
    codec = codec or ImageCodec()
    img, metadata = codec.decode(image_bytes)
    data = codec.encode(img, output_format, quality)
    return ProcessedImage(data, output_format, metadata.dimensions, img.size)


def target_dimensions(size: Tuple[int, int], width: Optional[int], height: Optional[int]) -> Tuple[int, int]:
    """Fill in a missing width or height from the source aspect ratio."""
    src_w, src_h = size
    if width and height:
        return width, height
    if width:
        return width, max(1, round(src_h * width / src_w))
    return max(1, round(src_w * height / src_h)), height


def fit_image(img: Image.Image, size: Tuple[int, int], fit: str) -> Image.Image:
    """
    Resizes an image into ``size`` using one of the fit modes.

    cover crops to fill, contain pads to fill, fill stretches, inside fits
    within the box and outside covers the box without cropping.
    """
    width, height = size
    if fit == 'cover':
        return ImageOps.fit(img, size, Image.Resampling.LANCZOS)
    if fit == 'contain':
        if img.mode not in ('RGB', 'RGBA'):
            img = img.convert('RGBA')
        color = PAD_COLOR if img.mode == 'RGBA' else PAD_COLOR[:3]
        return ImageOps.pad(img, size, Image.Resampling.LANCZOS, color=color)
    if fit == 'fill':
        return img.resize(size, Image.Resampling.LANCZOS)
    if fit == 'inside':
        return ImageOps.contain(img, size, Image.Resampling.LANCZOS)
    if fit == 'outside':
        scale = max(width / img.width, height / img.height)
        new_size = (max(1, round(img.width * scale)), max(1, round(img.height * scale)))
        return img.resize(new_size, Image.Resampling.LANCZOS)
    raise ValueError(f"Unknown fit mode: {fit}")


def resize_image(image_bytes: bytes, options: ResizeOptions,
                 codec: Optional[ImageCodec] = None) -> ProcessedImage:
    """
    Resizes an image and encodes it at a fixed quality.

    Args:
        image_bytes: Original image bytes
        options: Validated resize options
        codec: Codec to use (a default ImageCodec if omitted)

    Returns:
        ProcessedImage with the encoded bytes and both dimension pairs
    """
    codec = codec or ImageCodec()
    img, metadata = codec.decode(image_bytes)
    img = codec.normalize_orientation(img)

    if options.width and options.height:
        size = (options.width, options.height)
        resized = fit_image(img, size, options.fit)
    else:
        # A single dimension always scales proportionally.
        size = target_dimensions(img.size, options.width, options.height)
        resized = img.resize(size, Image.Resampling.LANCZOS)

    data = codec.encode(resized, options.output_format, options.quality)
    return ProcessedImage(data, options.output_format, metadata.dimensions, resized.size)
