"""
Main Flask application with configuration, logging, and error handlers.
"""
import os
import json
import logging
from datetime import datetime, timezone
from flask import Flask, jsonify
from dotenv import load_dotenv

from imagehub.compression import (
    AVIF_AVAILABLE,
    CompressionEngine,
    EngineConfig,
    ImageCodec,
    get_available_formats,
    searchable_formats,
)
from imagehub.utils.storage import ArtifactStore, CleanupScheduler

# Load environment variables
load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration class to load environment variables."""

    FLASK_ENV = os.getenv('FLASK_ENV', 'production')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'uploads')
    OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'outputs')
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', 50 * 1024 * 1024))  # whole request
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 10 * 1024 * 1024))  # per file
    MAX_COMPRESS_SIZE = int(os.getenv('MAX_COMPRESS_SIZE', 20 * 1024 * 1024))
    MAX_BATCH_FILES = int(os.getenv('MAX_BATCH_FILES', 20))
    COMPRESSION_MAX_ATTEMPTS = int(os.getenv('COMPRESSION_MAX_ATTEMPTS', 10))
    COMPRESSION_TOLERANCE = float(os.getenv('COMPRESSION_TOLERANCE', 0.05))
    DEFAULT_TARGET_PERCENTAGE = int(os.getenv('DEFAULT_TARGET_PERCENTAGE', 50))
    FILE_MAX_AGE_SECONDS = int(os.getenv('FILE_MAX_AGE_SECONDS', 60 * 60))
    CLEANUP_INTERVAL_SECONDS = int(os.getenv('CLEANUP_INTERVAL_SECONDS', 60 * 60))
    ENABLE_CLEANUP = _env_bool('ENABLE_CLEANUP', True)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    EXTRA_FIELDS = (
        'endpoint',
        'artifact',
        'format',
        'quality',
        'attempts',
        'size',
        'duration_ms',
        'status',
    )

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Add extra fields if present
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(app):
    """Set up JSON logging for the application and the imagehub package loggers."""
    log_level = getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    handler.setLevel(log_level)

    for logger in (app.logger, logging.getLogger('imagehub')):
        # Remove default handlers
        logger.handlers.clear()
        logger.setLevel(log_level)
        logger.addHandler(handler)
        # Prevent propagation to avoid duplicate logs
        logger.propagate = False


def create_app(config_overrides=None):
    """
    Create and configure the Flask application.

    Args:
        config_overrides: Optional dict applied on top of Config

    Returns:
        Flask app with ``engine``, ``store`` and ``cleanup`` attached
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Set up JSON logging
    setup_logging(app)

    # Build collaborators from explicit configuration
    codec = ImageCodec()
    app.engine = CompressionEngine(
        EngineConfig(
            max_attempts=app.config['COMPRESSION_MAX_ATTEMPTS'],
            tolerance=app.config['COMPRESSION_TOLERANCE'],
        ),
        codec,
    )
    app.codec = codec
    app.store = ArtifactStore(app.config['UPLOAD_DIR'], app.config['OUTPUT_DIR'])
    app.cleanup = CleanupScheduler(
        app.store,
        interval_seconds=app.config['CLEANUP_INTERVAL_SECONDS'],
        max_age_seconds=app.config['FILE_MAX_AGE_SECONDS'],
    )
    if app.config['ENABLE_CLEANUP']:
        app.cleanup.start()

    # Register error handlers
    register_error_handlers(app)

    # Register routes
    register_routes(app)

    app.logger.info('Flask application initialized', extra={
        'status': app.config['FLASK_ENV'],
    })

    return app


def error_payload(message, error, error_code):
    return {
        'success': False,
        'message': message,
        'error': error,
        'error_code': error_code
    }


def register_error_handlers(app):
    """Register error handlers for common HTTP status codes."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        app.logger.warning(f'Bad request: {str(error)}')
        message = str(error.description) if hasattr(error, 'description') else 'Invalid request data'
        return jsonify(error_payload(message, 'Bad request', 'BAD_REQUEST')), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        app.logger.warning(f'Resource not found: {str(error)}')
        message = str(error.description) if hasattr(error, 'description') else 'Resource not found'
        return jsonify(error_payload(message, 'Not found', 'NOT_FOUND')), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 Method Not Allowed errors."""
        app.logger.warning(f'Method not allowed: {str(error)}')
        return jsonify(error_payload('Method not allowed', 'Method not allowed', 'METHOD_NOT_ALLOWED')), 405

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle 413 Request Entity Too Large errors."""
        app.logger.warning(f'Request too large: {str(error)}')
        description = getattr(error, 'description', None)
        if not description or description == type(error).description:
            description = f'Upload exceeds maximum size of {app.config["MAX_CONTENT_LENGTH"]} bytes'
        return jsonify(error_payload(description, 'Request entity too large', 'FILE_TOO_LARGE')), 413

    @app.errorhandler(500)
    def internal_server_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f'Internal server error: {str(error)}', exc_info=True)
        return jsonify(error_payload('An unexpected error occurred', 'Internal server error', 'INTERNAL_ERROR')), 500


def register_routes(app):
    """Register application routes."""

    from imagehub.routes.compress import register_compress_route
    register_compress_route(app)

    from imagehub.routes.convert import register_convert_route
    register_convert_route(app)

    from imagehub.routes.resize import register_resize_route
    register_resize_route(app)

    from imagehub.routes.pdf import register_pdf_routes
    register_pdf_routes(app)

    from imagehub.routes.download import register_download_route
    register_download_route(app)

    @app.route('/health', methods=['GET'])
    def health():
        """
        Health check endpoint reporting which formats this server can encode.
        """
        return jsonify({
            'status': 'OK',
            'message': 'Image Utility Hub API is running',
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'formats': get_available_formats(),
            'compressionFormats': searchable_formats(),
            'avif': AVIF_AVAILABLE
        }), 200


def main():
    """Run the development server."""
    app = create_app()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=(Config.FLASK_ENV != 'production'))


if __name__ == '__main__':
    main()
