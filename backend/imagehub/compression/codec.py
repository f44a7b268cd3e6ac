"""
Pillow-backed image codec used by the compression engine and the
fixed-quality endpoints.
"""
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .encoders import FORMATS, FormatSpec, get_format
from .errors import ImageDecodeError


EXIF_ORIENTATION_TAG = 0x0112


@dataclass(frozen=True)
class ImageMetadata:
    """Pixel and container metadata captured at decode time."""
    format: Optional[str]
    width: int
    height: int
    mode: str
    exif: Optional[bytes] = None
    icc_profile: Optional[bytes] = None
    orientation: int = 1

    @property
    def dimensions(self) -> Tuple[int, int]:
        return (self.width, self.height)


class ImageCodec:
    """Decode, orientation-normalize and encode images through the format table."""

    def __init__(self, formats: Optional[Dict[str, FormatSpec]] = None):
        self.formats = FORMATS if formats is None else formats

    def decode(self, data: bytes) -> Tuple[Image.Image, ImageMetadata]:
        """
        Decode raw bytes into a fully loaded Pillow image.

        Args:
            data: Encoded image bytes

        Returns:
            Tuple of (image, metadata)

        Raises:
            ImageDecodeError: If the bytes are empty, truncated or not an image
        """
        if not data:
            raise ImageDecodeError("Source image is empty")
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise ImageDecodeError(f"Could not decode image: {e}") from e

        exif = image.getexif()
        metadata = ImageMetadata(
            format=(image.format or '').lower() or None,
            width=image.width,
            height=image.height,
            mode=image.mode,
            exif=exif.tobytes() if len(exif) else None,
            icc_profile=image.info.get('icc_profile'),
            orientation=int(exif.get(EXIF_ORIENTATION_TAG, 1) or 1),
        )
        return image, metadata

    def normalize_orientation(self, image: Image.Image) -> Image.Image:
        """Bake the EXIF orientation into the pixel layout."""
        return ImageOps.exif_transpose(image)

    def encode(
        self,
        image: Image.Image,
        fmt: str,
        quality: int,
        metadata: Optional[ImageMetadata] = None,
    ) -> bytes:
        """
        Encode ``image`` as ``fmt`` at ``quality``.

        Metadata (EXIF and ICC profile) is written only when ``metadata`` is
        given and the format keeps it.
        """
        spec = get_format(fmt, self.formats)
        return spec.encode(image, quality, self._save_kwargs(spec, metadata))

    def _save_kwargs(self, spec: FormatSpec, metadata: Optional[ImageMetadata]) -> dict:
        if metadata is None or not spec.keeps_metadata:
            return {}
        kwargs = {}
        if metadata.exif:
            kwargs['exif'] = metadata.exif
        if metadata.icc_profile:
            kwargs['icc_profile'] = metadata.icc_profile
        return kwargs
