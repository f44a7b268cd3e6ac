"""
Input validation and typed option parsing for the upload endpoints.
"""
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from imagehub.compression.encoders import (
    FORMATS,
    format_from_filename,
    normalize_format,
)


IMAGE_MIME_TYPES = {
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/tiff',
    'image/bmp',
    'image/avif',
}
PDF_MIME_TYPES = {'application/pdf'}

TRUE_VALUES = {'true', '1', 'yes', 'on'}
FALSE_VALUES = {'false', '0', 'no', 'off'}

RESIZE_FITS = ('cover', 'contain', 'fill', 'inside', 'outside')
PAGE_SIZES = {
    'a4': (595, 842),
    'letter': (612, 792),
    'legal': (612, 1008),
}
PAGE_ORIENTATIONS = ('portrait', 'landscape')
PAGE_MARGINS = {
    'none': 0,
    'small': 36,
    'medium': 72,
    'large': 108,
}


@dataclass(frozen=True)
class CompressOptions:
    target_percentage: int
    output_format: str
    strip_metadata: bool

    @property
    def target_ratio(self) -> float:
        return self.target_percentage / 100


@dataclass(frozen=True)
class ConvertOptions:
    output_format: str
    quality: int


@dataclass(frozen=True)
class ResizeOptions:
    width: Optional[int]
    height: Optional[int]
    fit: str
    output_format: str
    quality: int


@dataclass(frozen=True)
class PdfOptions:
    page_size: str
    orientation: str
    margin: str
    quality: int

    @property
    def page_dimensions(self) -> Tuple[int, int]:
        width, height = PAGE_SIZES[self.page_size]
        if self.orientation == 'landscape':
            return height, width
        return width, height

    @property
    def margin_points(self) -> int:
        return PAGE_MARGINS[self.margin]


def validate_upload(file, allowed_mime_types, max_size: int) -> Tuple[bool, str]:
    """
    Validates an uploaded file's MIME type and size.

    Args:
        file: FileStorage object from Flask request
        allowed_mime_types: Set of accepted MIME types
        max_size: Maximum size in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not file or not file.filename:
        return False, "No file uploaded"

    if file.mimetype not in allowed_mime_types:
        allowed = ', '.join(sorted(allowed_mime_types))
        return False, f"Invalid file type. Allowed types: {allowed}"

    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)

    if size > max_size:
        return False, f"File too large. Maximum {max_size // (1024 * 1024)}MB"

    if size == 0:
        return False, "Uploaded file is empty"

    return True, ""


def parse_bool(value, default: bool) -> Tuple[bool, bool, str]:
    """
    Parse a form boolean such as "true", "0" or "off".

    Returns:
        Tuple of (is_valid, parsed_value, error_message)
    """
    if value is None or value == '':
        return True, default, ""
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True, True, ""
    if text in FALSE_VALUES:
        return True, False, ""
    return False, default, f"Expected a boolean, got {value!r}"


def parse_int(value, default: Optional[int], name: str, minimum: Optional[int] = None,
              maximum: Optional[int] = None) -> Tuple[bool, Optional[int], str]:
    """
    Parse an integer form field with optional bounds.

    Returns:
        Tuple of (is_valid, parsed_value, error_message)
    """
    if value is None or str(value).strip() == '':
        return True, default, ""
    try:
        number = int(str(value).strip())
    except ValueError:
        return False, None, f"{name} must be an integer"
    if minimum is not None and number < minimum:
        return False, None, f"{name} must be at least {minimum}"
    if maximum is not None and number > maximum:
        return False, None, f"{name} must be at most {maximum}"
    return True, number, ""


def resolve_output_format(requested: Optional[str], filename: str,
                          searchable_only: bool = False) -> Tuple[bool, str, str]:
    """
    Turn an ``outputFormat`` field (or "original") into a known format name.

    Returns:
        Tuple of (is_valid, format_name, error_message)
    """
    requested = (requested or 'original').strip().lower()
    if requested == 'original':
        fmt = format_from_filename(filename)
    else:
        fmt = normalize_format(requested)

    spec = FORMATS.get(fmt)
    if spec is None:
        return False, fmt, f"Unsupported format: {fmt or requested}"
    if searchable_only and not spec.searchable:
        return False, fmt, f"Format {fmt} does not support size-targeted compression"
    if not spec.available:
        return False, fmt, f"Format {fmt} is not available on this server"
    return True, fmt, ""


def parse_compress_options(form, filename: str,
                           default_target: int = 50) -> Tuple[bool, Optional[CompressOptions], str]:
    """
    Validates the /compress form fields.

    Args:
        form: Request form MultiDict
        filename: Uploaded filename, used when outputFormat is "original"
        default_target: Default targetPercentage

    Returns:
        Tuple of (is_valid, options, error_message)
    """
    ok, target, error = parse_int(form.get('targetPercentage'), default_target,
                                  'targetPercentage', minimum=1)
    if not ok:
        return False, None, error

    ok, fmt, error = resolve_output_format(form.get('outputFormat'), filename, searchable_only=True)
    if not ok:
        return False, None, error

    ok, strip, error = parse_bool(form.get('stripMetadata'), True)
    if not ok:
        return False, None, f"Invalid stripMetadata: {error}"

    return True, CompressOptions(target_percentage=target, output_format=fmt, strip_metadata=strip), ""


def parse_convert_options(form) -> Tuple[bool, Optional[ConvertOptions], str]:
    """Validates the /convert form fields; outputFormat is required."""
    requested = form.get('outputFormat')
    if not requested:
        return False, None, "Output format is required"

    ok, fmt, error = resolve_output_format(requested, '')
    if not ok:
        return False, None, error

    ok, quality, error = parse_int(form.get('quality'), 90, 'quality', minimum=1, maximum=100)
    if not ok:
        return False, None, error

    return True, ConvertOptions(output_format=fmt, quality=quality), ""


def parse_resize_options(form, filename: str) -> Tuple[bool, Optional[ResizeOptions], str]:
    """Validates the /resize form fields; at least one of width/height is required."""
    ok, width, error = parse_int(form.get('width'), None, 'width', minimum=1, maximum=20000)
    if not ok:
        return False, None, error
    ok, height, error = parse_int(form.get('height'), None, 'height', minimum=1, maximum=20000)
    if not ok:
        return False, None, error
    if width is None and height is None:
        return False, None, "At least width or height is required"

    fit = (form.get('fit') or 'cover').strip().lower()
    if fit not in RESIZE_FITS:
        return False, None, f"Invalid fit: {fit}. Must be one of {', '.join(RESIZE_FITS)}"

    ok, keep_aspect, error = parse_bool(form.get('maintainAspectRatio'), True)
    if not ok:
        return False, None, f"Invalid maintainAspectRatio: {error}"
    if not keep_aspect:
        fit = 'fill'

    ok, fmt, error = resolve_output_format(form.get('outputFormat'), filename)
    if not ok:
        return False, None, error

    ok, quality, error = parse_int(form.get('quality'), 90, 'quality', minimum=1, maximum=100)
    if not ok:
        return False, None, error

    return True, ResizeOptions(width=width, height=height, fit=fit, output_format=fmt, quality=quality), ""


def parse_pdf_options(form) -> Tuple[bool, Optional[PdfOptions], str]:
    """Validates the /images-to-pdf form fields."""
    page_size = (form.get('pageSize') or 'a4').strip().lower()
    if page_size not in PAGE_SIZES:
        return False, None, f"Invalid pageSize: {page_size}"

    orientation = (form.get('orientation') or 'portrait').strip().lower()
    if orientation not in PAGE_ORIENTATIONS:
        return False, None, f"Invalid orientation: {orientation}"

    margin = (form.get('margin') or 'none').strip().lower()
    if margin not in PAGE_MARGINS:
        return False, None, f"Invalid margin: {margin}"

    ok, quality, error = parse_int(form.get('quality'), 90, 'quality', minimum=1, maximum=100)
    if not ok:
        return False, None, error

    return True, PdfOptions(page_size=page_size, orientation=orientation, margin=margin, quality=quality), ""
