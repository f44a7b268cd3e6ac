"""
PDF endpoints: /api/extract and /api/images-to-pdf.
"""
import uuid
from contextlib import ExitStack
from datetime import datetime, timezone
from flask import request, jsonify
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from imagehub.compression import InvalidRequestError
from imagehub.utils.pdf_processing import extract_images, images_to_pdf
from imagehub.utils.responses import download_url, elapsed_ms, failure_response, get_upload_file
from imagehub.utils.storage import format_file_size, generate_unique_filename
from imagehub.utils.validation import IMAGE_MIME_TYPES, PDF_MIME_TYPES, parse_pdf_options, validate_upload


def register_pdf_routes(app):
    """Register the PDF endpoints with the Flask app."""

    @app.route('/api/extract', methods=['POST'])
    def extract():
        """
        Extract embedded images from an uploaded PDF.

        Accepts multipart/form-data with:
        - image (or file): PDF document

        Returns JSON with the page count and one download entry per image.
        """
        start_time = datetime.now(timezone.utc)

        try:
            file = get_upload_file(request.files, PDF_MIME_TYPES, app.config['MAX_UPLOAD_SIZE'])

            with app.store.upload(file) as upload_path:
                page_count, images = extract_images(upload_path.read_bytes())

            batch_id = uuid.uuid4().hex
            extracted = []
            for index, image in enumerate(images, start=1):
                filename = app.store.write(
                    image.data,
                    f"{batch_id}_page{image.page}_{index}{image.extension}",
                )
                extracted.append({
                    'filename': filename,
                    'page': image.page,
                    'size': format_file_size(len(image.data)),
                    'downloadUrl': download_url(filename)
                })

            app.logger.info('PDF extraction completed', extra={
                'endpoint': '/api/extract',
                'duration_ms': elapsed_ms(start_time),
                'status': 'success'
            })

            return jsonify({
                'success': True,
                'message': f'Extracted {len(extracted)} images from PDF',
                'data': {
                    'pageCount': page_count,
                    'extractedImages': extracted
                }
            }), 200

        except (BadRequest, RequestEntityTooLarge):
            raise

        except Exception as e:
            app.logger.error(f'PDF extraction failed: {str(e)}', exc_info=True, extra={
                'endpoint': '/api/extract',
                'duration_ms': elapsed_ms(start_time),
                'status': 'error'
            })
            return failure_response('Error extracting images from PDF', e)

    @app.route('/api/images-to-pdf', methods=['POST'])
    def create_pdf():
        """
        Assemble uploaded images into a PDF, one image per page.

        Accepts multipart/form-data with:
        - images: Files (up to MAX_BATCH_FILES)
        - pageSize: a4 | letter | legal (default a4)
        - orientation: portrait | landscape (default portrait)
        - margin: none | small | medium | large (default none)
        - quality: JPEG quality used when embedding (default 90)
        """
        start_time = datetime.now(timezone.utc)

        try:
            files = [f for f in request.files.getlist('images') if f and f.filename]
            if not files:
                raise BadRequest('No images uploaded')
            if len(files) > app.config['MAX_BATCH_FILES']:
                raise BadRequest(f"Too many images. Maximum {app.config['MAX_BATCH_FILES']}")

            for file in files:
                is_valid, error_msg = validate_upload(file, IMAGE_MIME_TYPES, app.config['MAX_UPLOAD_SIZE'])
                if not is_valid:
                    if 'too large' in error_msg.lower():
                        raise RequestEntityTooLarge(f'{file.filename}: {error_msg}')
                    raise BadRequest(f'{file.filename}: {error_msg}')

            is_valid, options, error_msg = parse_pdf_options(request.form)
            if not is_valid:
                raise BadRequest(error_msg)

            with ExitStack() as stack:
                paths = [stack.enter_context(app.store.upload(file)) for file in files]
                pdf_bytes, page_count = images_to_pdf(
                    [path.read_bytes() for path in paths],
                    options,
                    codec=app.codec,
                )

            filename = app.store.write(pdf_bytes, generate_unique_filename('', '.pdf'))

            app.logger.info('PDF created', extra={
                'endpoint': '/api/images-to-pdf',
                'artifact': filename,
                'duration_ms': elapsed_ms(start_time),
                'status': 'success'
            })

            return jsonify({
                'success': True,
                'message': 'PDF created successfully',
                'data': {
                    'filename': filename,
                    'pageCount': page_count,
                    'pageSize': options.page_size,
                    'orientation': options.orientation,
                    'size': format_file_size(len(pdf_bytes)),
                    'downloadUrl': download_url(filename)
                }
            }), 200

        except (BadRequest, RequestEntityTooLarge):
            raise

        except InvalidRequestError as e:
            raise BadRequest(e.message)

        except Exception as e:
            app.logger.error(f'PDF creation failed: {str(e)}', exc_info=True, extra={
                'endpoint': '/api/images-to-pdf',
                'duration_ms': elapsed_ms(start_time),
                'status': 'error'
            })
            return failure_response('Error creating PDF', e)
