"""Size-targeted image compression: engine, format table and Pillow codec."""

from .codec import ImageCodec, ImageMetadata
from .encoders import (
    AVIF_AVAILABLE,
    FORMATS,
    FormatSpec,
    format_from_filename,
    get_available_formats,
    get_format,
    normalize_format,
    searchable_formats,
)
from .engine import CompressionEngine, EngineConfig
from .errors import (
    CompressionCancelledError,
    CompressionError,
    ImageDecodeError,
    InvalidRequestError,
    NoViableEncodeError,
    UnsupportedFormatError,
)
from .result import CompressionRequest, CompressionResult, EncodeAttempt, SearchState, TrialRecord

__all__ = [
    'AVIF_AVAILABLE',
    'FORMATS',
    'CompressionCancelledError',
    'CompressionEngine',
    'CompressionError',
    'CompressionRequest',
    'CompressionResult',
    'EncodeAttempt',
    'EngineConfig',
    'FormatSpec',
    'ImageCodec',
    'ImageDecodeError',
    'ImageMetadata',
    'InvalidRequestError',
    'NoViableEncodeError',
    'SearchState',
    'TrialRecord',
    'UnsupportedFormatError',
    'format_from_filename',
    'get_available_formats',
    'get_format',
    'normalize_format',
    'searchable_formats',
]
