"""
Small helpers shared by the upload endpoints.
"""
from datetime import datetime, timezone

from flask import jsonify
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from imagehub.compression.errors import CompressionError
from imagehub.utils.validation import validate_upload


UPLOAD_FIELDS = ('image', 'file')


def download_url(filename: str) -> str:
    return f"/api/download/{filename}"


def elapsed_ms(start_time: datetime) -> int:
    return int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)


def get_upload_file(files, allowed_mime_types, max_size):
    """
    Pick the single upload from a request and validate it.

    Raises:
        BadRequest: No file, or wrong type
        RequestEntityTooLarge: File above ``max_size``
    """
    file = None
    for field in UPLOAD_FIELDS:
        if field in files:
            file = files[field]
            break
    if file is None or not file.filename:
        raise BadRequest('No file uploaded')

    is_valid, error_msg = validate_upload(file, allowed_mime_types, max_size)
    if not is_valid:
        if 'too large' in error_msg.lower():
            raise RequestEntityTooLarge(error_msg)
        raise BadRequest(error_msg)
    return file


def failure_response(message: str, error: Exception, status: int = 500):
    """JSON body for a failed operation: {success, message, error, error_code}."""
    if isinstance(error, CompressionError):
        details = error.to_dict()
    else:
        details = {'kind': getattr(error, 'kind', 'internal_error'), 'message': str(error)}
    return jsonify({
        'success': False,
        'message': message,
        'error': details['message'],
        'error_code': details['kind'].upper()
    }), status
