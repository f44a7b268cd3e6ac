"""Format table: one entry per output format with its Pillow encode parameters.

Adding a format means adding one ``FormatSpec`` to ``FORMATS``. The engine
only searches formats whose entry is marked ``searchable``; the rest are
encoded once at a fixed setting by the convert/resize endpoints.
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List, Optional

from PIL import Image, features

from .errors import UnsupportedFormatError


AVIF_AVAILABLE = features.check('avif')

PNG_COMPRESS_LEVEL = 9
WEBP_METHOD = 6
AVIF_SPEED = 6

FORMAT_ALIASES = {
    'jpg': 'jpeg',
    'tif': 'tiff',
}

# Modes sharing an ICC color space; anything else maps to itself.
ICC_COLOR_SPACES = {
    '1': 'GRAY',
    'L': 'GRAY',
    'LA': 'GRAY',
    'I': 'GRAY',
    'F': 'GRAY',
    'P': 'RGB',
    'RGB': 'RGB',
    'RGBA': 'RGB',
    'RGBX': 'RGB',
}


EncodeFunc = Callable[[Image.Image, int, dict], bytes]


@dataclass(frozen=True)
class FormatSpec:
    """Everything the codec needs to know about one output format.

    Attributes:
        name: Canonical lower-case format name
        extension: File extension including the dot
        mime_type: MIME type used for downloads
        searchable: Whether quality search makes sense for this format
        encode: Function (image, quality, save_kwargs) -> bytes
        keeps_metadata: Whether EXIF/ICC kwargs are passed to Pillow
    """
    name: str
    extension: str
    mime_type: str
    searchable: bool
    encode: EncodeFunc
    keeps_metadata: bool = True

    @property
    def available(self) -> bool:
        if self.name == 'avif':
            return AVIF_AVAILABLE
        return True


def _flatten_alpha(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing transparency on white."""
    if image.mode in ('RGBA', 'LA') or (image.mode == 'P' and 'transparency' in image.info):
        rgba = image.convert('RGBA')
        background = Image.new('RGB', rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def _match_icc(source: Image.Image, converted: Image.Image, save_kwargs: dict) -> dict:
    """Drop the ICC profile when conversion moved the pixels to another color space."""
    if ICC_COLOR_SPACES.get(source.mode, source.mode) != ICC_COLOR_SPACES.get(converted.mode, converted.mode):
        return {**save_kwargs, 'icc_profile': None}
    return save_kwargs


def _rgb_or_rgba(image: Image.Image) -> Image.Image:
    if image.mode == 'P':
        if 'transparency' in image.info:
            return image.convert('RGBA')
        return image.convert('RGB')
    if image.mode == 'LA':
        return image.convert('RGBA')
    if image.mode not in ('RGB', 'RGBA'):
        return image.convert('RGB')
    return image


def _encode_jpeg(image: Image.Image, quality: int, save_kwargs: dict) -> bytes:
    prepared = _flatten_alpha(image)
    save_kwargs = _match_icc(image, prepared, save_kwargs)
    buffer = BytesIO()
    prepared.save(
        buffer,
        format='JPEG',
        quality=quality,
        optimize=True,
        progressive=True,
        **save_kwargs,
    )
    return buffer.getvalue()


def png_palette_size(quality: int) -> int:
    """Number of palette colors used for a lossy PNG at ``quality``."""
    return max(2, min(256, round(256 * quality / 100)))


def _encode_png(image: Image.Image, quality: int, save_kwargs: dict) -> bytes:
    prepared = _rgb_or_rgba(image)
    save_kwargs = _match_icc(image, prepared, save_kwargs)
    image = prepared
    if quality < 100:
        # Indexed-color path: fewer colors at lower quality.
        method = Image.Quantize.FASTOCTREE if image.mode == 'RGBA' else Image.Quantize.MEDIANCUT
        image = image.quantize(colors=png_palette_size(quality), method=method)
    buffer = BytesIO()
    image.save(
        buffer,
        format='PNG',
        optimize=True,
        compress_level=PNG_COMPRESS_LEVEL,
        **save_kwargs,
    )
    return buffer.getvalue()


def _encode_webp(image: Image.Image, quality: int, save_kwargs: dict) -> bytes:
    prepared = _rgb_or_rgba(image)
    save_kwargs = _match_icc(image, prepared, save_kwargs)
    buffer = BytesIO()
    prepared.save(buffer, format='WEBP', quality=quality, method=WEBP_METHOD, **save_kwargs)
    return buffer.getvalue()


def _encode_avif(image: Image.Image, quality: int, save_kwargs: dict) -> bytes:
    if not AVIF_AVAILABLE:
        raise UnsupportedFormatError("AVIF encoding is not supported by this Pillow build")
    prepared = _rgb_or_rgba(image)
    save_kwargs = _match_icc(image, prepared, save_kwargs)
    buffer = BytesIO()
    prepared.save(buffer, format='AVIF', quality=quality, speed=AVIF_SPEED, **save_kwargs)
    return buffer.getvalue()


def _encode_gif(image: Image.Image, quality: int, save_kwargs: dict) -> bytes:
    if image.mode not in ('P', 'L'):
        image = _rgb_or_rgba(image)
    buffer = BytesIO()
    image.save(buffer, format='GIF', optimize=True)
    return buffer.getvalue()


def _encode_tiff(image: Image.Image, quality: int, save_kwargs: dict) -> bytes:
    image = _rgb_or_rgba(image)
    buffer = BytesIO()
    image.save(buffer, format='TIFF', compression='tiff_deflate')
    return buffer.getvalue()


FORMATS: Dict[str, FormatSpec] = {
    'jpeg': FormatSpec('jpeg', '.jpeg', 'image/jpeg', True, _encode_jpeg),
    'png': FormatSpec('png', '.png', 'image/png', True, _encode_png),
    'webp': FormatSpec('webp', '.webp', 'image/webp', True, _encode_webp),
    'avif': FormatSpec('avif', '.avif', 'image/avif', True, _encode_avif),
    'gif': FormatSpec('gif', '.gif', 'image/gif', False, _encode_gif, keeps_metadata=False),
    'tiff': FormatSpec('tiff', '.tiff', 'image/tiff', False, _encode_tiff, keeps_metadata=False),
}


def normalize_format(name: Optional[str]) -> str:
    """Lower-case a format name and resolve aliases (jpg -> jpeg)."""
    if not name:
        return ''
    name = name.strip().lower().lstrip('.')
    return FORMAT_ALIASES.get(name, name)


def get_format(name: str, table: Optional[Dict[str, FormatSpec]] = None) -> FormatSpec:
    """Look up a format, raising UnsupportedFormatError if unknown or unavailable."""
    table = FORMATS if table is None else table
    spec = table.get(normalize_format(name))
    if spec is None:
        supported = ', '.join(sorted(table))
        raise UnsupportedFormatError(f"Unsupported format: {name}. Supported formats: {supported}")
    if not spec.available:
        raise UnsupportedFormatError(f"Format {spec.name} is not available on this server")
    return spec


def format_from_filename(filename: str) -> str:
    """Derive a normalized format name from a filename's extension."""
    return normalize_format(Path(filename or '').suffix)


def searchable_formats(table: Optional[Dict[str, FormatSpec]] = None) -> List[str]:
    table = FORMATS if table is None else table
    return [name for name, spec in table.items() if spec.searchable and spec.available]


def get_available_formats(table: Optional[Dict[str, FormatSpec]] = None) -> List[str]:
    table = FORMATS if table is None else table
    return [name for name, spec in table.items() if spec.available]
