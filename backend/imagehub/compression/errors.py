"""
Error taxonomy for the compression engine.

Every error carries a machine-readable ``kind`` and a human-readable message.
The HTTP layer maps kinds to status codes; the engine never decides them.
"""
from typing import Dict


class CompressionError(Exception):
    """Base class for all engine-level failures."""

    kind = 'compression_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {'kind': self.kind, 'message': self.message}


class InvalidRequestError(CompressionError):
    """The request was rejected before any decoding happened."""

    kind = 'invalid_request'


class UnsupportedFormatError(InvalidRequestError):
    """The output format is unknown, unavailable, or not searchable."""

    kind = 'unsupported_format'


class ImageDecodeError(CompressionError):
    """The source bytes could not be decoded as an image."""

    kind = 'decode_error'


class NoViableEncodeError(CompressionError):
    """Every trial encode failed, so there is nothing to return."""

    kind = 'encode_failed'


class CompressionCancelledError(CompressionError):
    """The caller asked the search to stop between trials."""

    kind = 'cancelled'
