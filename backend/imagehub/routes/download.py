"""
/api/download endpoint for produced artifacts.
"""
from flask import send_file
from werkzeug.exceptions import NotFound

from imagehub.utils.storage import ArtifactNotFoundError


def register_download_route(app):
    """Register the /api/download/<filename> endpoint with the Flask app."""

    @app.route('/api/download/<filename>', methods=['GET'])
    def download(filename):
        """Send a stored artifact as an attachment; 404 once it has been cleaned up."""
        try:
            path = app.store.resolve(filename)
        except ArtifactNotFoundError:
            app.logger.info('Download of missing artifact', extra={
                'endpoint': '/api/download',
                'artifact': filename,
                'status': 'not_found'
            })
            raise NotFound('File not found')

        return send_file(path, as_attachment=True, download_name=filename)
