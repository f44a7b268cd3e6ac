"""
Tests for /api/compress and /api/download endpoints.
"""
import pytest
import io
import json
from unittest.mock import patch
from PIL import Image

from imagehub.compression import NoViableEncodeError
from imagehub.main import create_app


@pytest.fixture
def app(tmp_path):
    """Create and configure a test Flask application."""
    app = create_app({
        'TESTING': True,
        'UPLOAD_DIR': str(tmp_path / 'uploads'),
        'OUTPUT_DIR': str(tmp_path / 'outputs'),
        'ENABLE_CLEANUP': False,
    })
    yield app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


def make_image_bytes(fmt='JPEG', size=(256, 256), **save_kwargs):
    """Create a detailed test image in memory."""
    detail = Image.effect_mandelbrot(size, (-2.0, -1.5, 1.0, 1.5), 100)
    img = Image.merge('RGB', (detail, Image.linear_gradient('L').resize(size), Image.radial_gradient('L').resize(size)))
    img_bytes = io.BytesIO()
    img.save(img_bytes, format=fmt, **save_kwargs)
    return img_bytes.getvalue()


def post_compress(client, data=None, filename='test.jpg', content_type='image/jpeg', **form):
    payload = dict(form)
    if data is not None:
        payload['image'] = (io.BytesIO(data), filename, content_type)
    return client.post('/api/compress', data=payload, content_type='multipart/form-data')


def listdir(path):
    return sorted(p.name for p in path.iterdir())


class TestCompressEndpoint:
    """Tests for /api/compress endpoint."""

    def test_compress_success(self, client, app, tmp_path):
        """Test a successful compression with the default target."""
        response = post_compress(client, make_image_bytes(quality=95))

        assert response.status_code == 200
        data = json.loads(response.get_data(as_text=True))
        assert data['success'] is True
        result = data['data']
        assert result['format'] == 'jpeg'
        assert result['filename'].endswith('.jpeg')
        assert result['downloadUrl'] == f"/api/download/{result['filename']}"
        assert 1 <= result['qualityUsed'] <= 100
        assert 1 <= result['attempts'] <= 10
        assert result['savings'].endswith('%')
        assert isinstance(result['withinTolerance'], bool)
        assert listdir(tmp_path / 'outputs') == [result['filename']]
        assert listdir(tmp_path / 'uploads') == []

    def test_compress_to_other_format(self, client):
        """Test that outputFormat selects the encoder."""
        response = post_compress(client, make_image_bytes(quality=95), outputFormat='webp', targetPercentage='30')

        assert response.status_code == 200
        result = json.loads(response.get_data(as_text=True))['data']
        assert result['format'] == 'webp'
        assert result['filename'].endswith('.webp')

    def test_compress_png_original_format(self, client, tmp_path):
        """Test that PNG input keeps PNG output by default."""
        response = post_compress(client, make_image_bytes('PNG'), filename='shot.png', content_type='image/png')

        assert response.status_code == 200
        result = json.loads(response.get_data(as_text=True))['data']
        assert result['format'] == 'png'
        stored = (tmp_path / 'outputs' / result['filename']).read_bytes()
        assert Image.open(io.BytesIO(stored)).format == 'PNG'

    def test_compress_no_file(self, client):
        """Test that a missing upload is a 400."""
        response = post_compress(client, targetPercentage='50')

        assert response.status_code == 400
        data = json.loads(response.get_data(as_text=True))
        assert data['message'] == 'No file uploaded'
        assert data['error_code'] == 'BAD_REQUEST'

    def test_compress_wrong_mime(self, client):
        """Test that non-image uploads are a 400."""
        response = post_compress(client, b'hello', filename='notes.txt', content_type='text/plain')

        assert response.status_code == 400

    @pytest.mark.parametrize('form', [
        {'outputFormat': 'gif'},
        {'outputFormat': 'bmp'},
        {'targetPercentage': '0'},
        {'targetPercentage': 'lots'},
        {'stripMetadata': 'perhaps'},
    ])
    def test_compress_invalid_options(self, client, tmp_path, form):
        """Test that invalid form fields are a 400 and nothing is stored."""
        response = post_compress(client, make_image_bytes(), **form)

        assert response.status_code == 400
        assert listdir(tmp_path / 'outputs') == []
        assert listdir(tmp_path / 'uploads') == []

    def test_compress_too_large(self, app, client):
        """Test that uploads above MAX_COMPRESS_SIZE are a 413."""
        app.config['MAX_COMPRESS_SIZE'] = 100
        response = post_compress(client, make_image_bytes())

        assert response.status_code == 413
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'FILE_TOO_LARGE'

    def test_compress_malformed_image(self, client, tmp_path):
        """Test that undecodable bytes fail without leaving files behind."""
        response = post_compress(client, b'\xff\xd8\xff' + b'garbage' * 100)

        assert response.status_code == 500
        data = json.loads(response.get_data(as_text=True))
        assert data['success'] is False
        assert data['error_code'] == 'DECODE_ERROR'
        assert listdir(tmp_path / 'outputs') == []
        assert listdir(tmp_path / 'uploads') == []

    def test_compress_all_encodes_failed(self, app, client, tmp_path):
        """Test that an exhausted search maps to ENCODE_FAILED."""
        with patch.object(app.engine, 'compress', side_effect=NoViableEncodeError('All 10 encode attempts failed')):
            response = post_compress(client, make_image_bytes())

        assert response.status_code == 500
        data = json.loads(response.get_data(as_text=True))
        assert data['error_code'] == 'ENCODE_FAILED'
        assert data['message'] == 'Error compressing image'
        assert listdir(tmp_path / 'uploads') == []

    def test_compress_same_name_uploads_do_not_collide(self, client):
        """Test that two uploads with one filename produce two artifacts."""
        image = make_image_bytes()
        first = json.loads(post_compress(client, image).get_data(as_text=True))['data']
        second = json.loads(post_compress(client, image).get_data(as_text=True))['data']

        assert first['filename'] != second['filename']
        assert first['qualityUsed'] == second['qualityUsed']
        assert first['compressedSize'] == second['compressedSize']


class TestDownloadEndpoint:
    """Tests for /api/download endpoint."""

    def test_download_compressed_file(self, client):
        """Test that a produced artifact downloads as an attachment."""
        result = json.loads(post_compress(client, make_image_bytes()).get_data(as_text=True))['data']

        response = client.get(result['downloadUrl'])

        assert response.status_code == 200
        assert 'attachment' in response.headers['Content-Disposition']
        assert Image.open(io.BytesIO(response.data)).format == 'JPEG'

    def test_download_missing_file(self, client):
        """Test that unknown artifacts are a 404."""
        response = client.get('/api/download/does-not-exist.jpeg')

        assert response.status_code == 404
        data = json.loads(response.get_data(as_text=True))
        assert data['message'] == 'File not found'
        assert data['error_code'] == 'NOT_FOUND'

    def test_download_after_cleanup(self, app, client):
        """Test that an artifact removed by the sweep is a 404."""
        result = json.loads(post_compress(client, make_image_bytes()).get_data(as_text=True))['data']

        app.store.sweep(-1)
        response = client.get(result['downloadUrl'])

        assert response.status_code == 404
