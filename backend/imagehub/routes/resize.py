"""
/api/resize endpoint.
"""
from datetime import datetime, timezone
from flask import request, jsonify
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from imagehub.compression import InvalidRequestError, get_format
from imagehub.utils.image_processing import resize_image
from imagehub.utils.responses import download_url, elapsed_ms, failure_response, get_upload_file
from imagehub.utils.storage import format_file_size, generate_unique_filename
from imagehub.utils.validation import IMAGE_MIME_TYPES, parse_resize_options


def register_resize_route(app):
    """Register the /api/resize endpoint with the Flask app."""

    @app.route('/api/resize', methods=['POST'])
    def resize():
        """
        Resize an image.

        Accepts multipart/form-data with:
        - image: File
        - width / height: int (at least one)
        - fit: cover | contain | fill | inside | outside (default cover)
        - maintainAspectRatio: bool (default true, false forces fill)
        - outputFormat: format name or original (default original)
        - quality: int 1-100 (default 90)
        """
        start_time = datetime.now(timezone.utc)

        try:
            file = get_upload_file(request.files, IMAGE_MIME_TYPES, app.config['MAX_UPLOAD_SIZE'])

            is_valid, options, error_msg = parse_resize_options(request.form, file.filename)
            if not is_valid:
                raise BadRequest(error_msg)

            with app.store.upload(file) as upload_path:
                original_size = upload_path.stat().st_size
                processed = resize_image(upload_path.read_bytes(), options, codec=app.codec)

            spec = get_format(processed.format)
            filename = app.store.write(processed.data, generate_unique_filename(file.filename, spec.extension))

            app.logger.info('Resize completed', extra={
                'endpoint': '/api/resize',
                'artifact': filename,
                'format': processed.format,
                'duration_ms': elapsed_ms(start_time),
                'status': 'success'
            })

            original_w, original_h = processed.original_dimensions
            new_w, new_h = processed.dimensions
            return jsonify({
                'success': True,
                'message': 'Image resized successfully',
                'data': {
                    'filename': filename,
                    'originalDimensions': f"{original_w}x{original_h}",
                    'newDimensions': f"{new_w}x{new_h}",
                    'originalSize': format_file_size(original_size),
                    'resizedSize': format_file_size(len(processed.data)),
                    'downloadUrl': download_url(filename),
                    'format': processed.format
                }
            }), 200

        except (BadRequest, RequestEntityTooLarge):
            raise

        except InvalidRequestError as e:
            raise BadRequest(e.message)

        except Exception as e:
            app.logger.error(f'Resize failed: {str(e)}', exc_info=True, extra={
                'endpoint': '/api/resize',
                'duration_ms': elapsed_ms(start_time),
                'status': 'error'
            })
            return failure_response('Error resizing image', e)
