"""
/api/compress endpoint: size-targeted compression of a single image.
"""
from datetime import datetime, timezone
from flask import request, jsonify
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from imagehub.compression import CompressionRequest, InvalidRequestError, get_format
from imagehub.utils.responses import download_url, elapsed_ms, failure_response, get_upload_file
from imagehub.utils.storage import format_file_size, generate_unique_filename
from imagehub.utils.validation import IMAGE_MIME_TYPES, parse_compress_options


def register_compress_route(app):
    """Register the /api/compress endpoint with the Flask app."""

    @app.route('/api/compress', methods=['POST'])
    def compress():
        """
        Compress an image towards a percentage of its original size.

        Accepts multipart/form-data with:
        - image: File (JPEG/PNG/WebP/AVIF/...)
        - targetPercentage: int (default 50)
        - outputFormat: jpeg | png | webp | avif | original (default original)
        - stripMetadata: bool (default true)

        Returns JSON with the stored filename, sizes and the quality used.
        """
        start_time = datetime.now(timezone.utc)

        try:
            # 1. Validate upload and form fields
            file = get_upload_file(request.files, IMAGE_MIME_TYPES, app.config['MAX_COMPRESS_SIZE'])

            is_valid, options, error_msg = parse_compress_options(
                request.form,
                file.filename,
                default_target=app.config['DEFAULT_TARGET_PERCENTAGE'],
            )
            if not is_valid:
                raise BadRequest(error_msg)

            # 2. Run the search; the upload is removed when the block exits
            with app.store.upload(file) as upload_path:
                source_bytes = upload_path.read_bytes()
                result = app.engine.compress(CompressionRequest(
                    source_bytes=source_bytes,
                    target_ratio=options.target_ratio,
                    output_format=options.output_format,
                    strip_metadata=options.strip_metadata,
                ))

            # 3. Persist the winning encode
            spec = get_format(result.format)
            filename = app.store.write(
                result.final_bytes,
                generate_unique_filename(file.filename, spec.extension),
            )

            app.logger.info('Compression completed', extra={
                'endpoint': '/api/compress',
                'artifact': filename,
                'format': result.format,
                'quality': result.final_quality,
                'attempts': result.attempts_used,
                'duration_ms': elapsed_ms(start_time),
                'status': 'success'
            })

            return jsonify({
                'success': True,
                'message': 'Image compressed successfully',
                'data': {
                    'filename': filename,
                    'originalSize': format_file_size(result.source_size_bytes),
                    'compressedSize': format_file_size(result.final_size_bytes),
                    'savings': f"{result.savings_percent:.2f}%",
                    'downloadUrl': download_url(filename),
                    'format': result.format,
                    'qualityUsed': result.final_quality,
                    'targetSize': format_file_size(result.target_size_bytes),
                    'attempts': result.attempts_used,
                    'withinTolerance': result.within_tolerance
                }
            }), 200

        except (BadRequest, RequestEntityTooLarge):
            # Re-raise HTTP exceptions
            raise

        except InvalidRequestError as e:
            raise BadRequest(e.message)

        except Exception as e:
            app.logger.error(f'Compression failed: {str(e)}', exc_info=True, extra={
                'endpoint': '/api/compress',
                'duration_ms': elapsed_ms(start_time),
                'status': 'error'
            })
            return failure_response('Error compressing image', e)
