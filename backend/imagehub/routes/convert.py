"""
/api/convert endpoint: re-encode an image into another format.
"""
from datetime import datetime, timezone
from flask import request, jsonify
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from imagehub.compression import InvalidRequestError, format_from_filename, get_format
from imagehub.utils.image_processing import convert_image
from imagehub.utils.responses import download_url, elapsed_ms, failure_response, get_upload_file
from imagehub.utils.storage import format_file_size, generate_unique_filename
from imagehub.utils.validation import IMAGE_MIME_TYPES, parse_convert_options


def register_convert_route(app):
    """Register the /api/convert endpoint with the Flask app."""

    @app.route('/api/convert', methods=['POST'])
    def convert():
        """
        Convert an image to a different format at a fixed quality.

        Accepts multipart/form-data with:
        - image: File
        - outputFormat: jpeg | png | webp | avif | gif | tiff (required)
        - quality: int 1-100 (default 90)
        """
        start_time = datetime.now(timezone.utc)

        try:
            file = get_upload_file(request.files, IMAGE_MIME_TYPES, app.config['MAX_UPLOAD_SIZE'])

            is_valid, options, error_msg = parse_convert_options(request.form)
            if not is_valid:
                raise BadRequest(error_msg)

            with app.store.upload(file) as upload_path:
                original_size = upload_path.stat().st_size
                processed = convert_image(
                    upload_path.read_bytes(),
                    options.output_format,
                    options.quality,
                    codec=app.codec,
                )

            spec = get_format(processed.format)
            filename = app.store.write(processed.data, generate_unique_filename(file.filename, spec.extension))

            app.logger.info('Conversion completed', extra={
                'endpoint': '/api/convert',
                'artifact': filename,
                'format': processed.format,
                'duration_ms': elapsed_ms(start_time),
                'status': 'success'
            })

            return jsonify({
                'success': True,
                'message': 'Image converted successfully',
                'data': {
                    'filename': filename,
                    'originalFormat': format_from_filename(file.filename),
                    'newFormat': processed.format,
                    'originalSize': format_file_size(original_size),
                    'convertedSize': format_file_size(len(processed.data)),
                    'downloadUrl': download_url(filename)
                }
            }), 200

        except (BadRequest, RequestEntityTooLarge):
            raise

        except InvalidRequestError as e:
            raise BadRequest(e.message)

        except Exception as e:
            app.logger.error(f'Conversion failed: {str(e)}', exc_info=True, extra={
                'endpoint': '/api/convert',
                'duration_ms': elapsed_ms(start_time),
                'status': 'error'
            })
            return failure_response('Error converting image', e)
