"""
Tests for upload validation and form option parsing.
"""
import pytest
import io
from werkzeug.datastructures import FileStorage, MultiDict
from imagehub.utils.validation import (
    IMAGE_MIME_TYPES,
    PDF_MIME_TYPES,
    parse_bool,
    parse_compress_options,
    parse_convert_options,
    parse_int,
    parse_pdf_options,
    parse_resize_options,
    validate_upload,
)


def make_file(data=b'\xff\xd8\xff' + b'\x00' * 100, filename='test.jpg', content_type='image/jpeg'):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)


class TestUploadValidation:
    """Tests for file upload validation."""

    def test_valid_image(self):
        """Test that a JPEG within limits passes validation."""
        is_valid, error = validate_upload(make_file(), IMAGE_MIME_TYPES, 1024)
        assert is_valid
        assert error == ""

    def test_valid_pdf(self):
        """Test that PDFs pass against the PDF allow-list."""
        file = make_file(b'%PDF-1.7' + b'\x00' * 10, 'doc.pdf', 'application/pdf')
        is_valid, error = validate_upload(file, PDF_MIME_TYPES, 1024)
        assert is_valid

    def test_missing_file(self):
        """Test that a missing file is rejected."""
        is_valid, error = validate_upload(None, IMAGE_MIME_TYPES, 1024)
        assert not is_valid
        assert error == "No file uploaded"

    def test_wrong_mime_type(self):
        """Test that non-image uploads are rejected."""
        file = make_file(b'hello', 'notes.txt', 'text/plain')
        is_valid, error = validate_upload(file, IMAGE_MIME_TYPES, 1024)
        assert not is_valid
        assert "Invalid file type" in error

    def test_too_large(self):
        """Test that oversize uploads are rejected with the limit in MB."""
        file = make_file(b'x' * (2 * 1024 * 1024 + 1))
        is_valid, error = validate_upload(file, IMAGE_MIME_TYPES, 2 * 1024 * 1024)
        assert not is_valid
        assert error == "File too large. Maximum 2MB"

    def test_empty_file(self):
        """Test that zero-byte uploads are rejected."""
        is_valid, error = validate_upload(make_file(b''), IMAGE_MIME_TYPES, 1024)
        assert not is_valid
        assert error == "Uploaded file is empty"

    def test_stream_rewound(self):
        """Test that validation leaves the stream at the start."""
        file = make_file(b'abcdef')
        validate_upload(file, IMAGE_MIME_TYPES, 1024)
        assert file.stream.read() == b'abcdef'


class TestScalarParsing:
    """Tests for boolean and integer form fields."""

    @pytest.mark.parametrize('value,expected', [
        ('true', True), ('1', True), ('ON', True),
        ('false', False), ('0', False), ('no', False),
        (None, True), ('', True),
    ])
    def test_parse_bool(self, value, expected):
        """Test accepted spellings and the default."""
        ok, parsed, _ = parse_bool(value, True)
        assert ok
        assert parsed is expected

    def test_parse_bool_rejects_garbage(self):
        """Test that unknown spellings are errors."""
        ok, _, error = parse_bool('maybe', True)
        assert not ok
        assert 'maybe' in error

    def test_parse_int_bounds(self):
        """Test defaults, bounds and non-numeric input."""
        assert parse_int(None, 7, 'n') == (True, 7, "")
        assert parse_int(' 42 ', None, 'n') == (True, 42, "")
        assert parse_int('abc', None, 'n')[2] == "n must be an integer"
        assert parse_int('0', None, 'n', minimum=1)[2] == "n must be at least 1"
        assert parse_int('101', None, 'n', maximum=100)[2] == "n must be at most 100"


class TestCompressOptions:
    """Tests for /compress form parsing."""

    def test_defaults(self):
        """Test the default target, format and metadata handling."""
        ok, options, _ = parse_compress_options(MultiDict(), 'photo.jpg')
        assert ok
        assert options.target_percentage == 50
        assert options.target_ratio == 0.5
        assert options.output_format == 'jpeg'
        assert options.strip_metadata is True

    def test_explicit_fields(self):
        """Test explicit values for every field."""
        form = MultiDict({'targetPercentage': '30', 'outputFormat': 'webp', 'stripMetadata': 'false'})
        ok, options, _ = parse_compress_options(form, 'photo.png')
        assert ok
        assert options.target_percentage == 30
        assert options.output_format == 'webp'
        assert options.strip_metadata is False

    def test_target_above_hundred_allowed(self):
        """Test that growing the file is a valid request."""
        ok, options, _ = parse_compress_options(MultiDict({'targetPercentage': '150'}), 'a.png')
        assert ok
        assert options.target_ratio == 1.5

    @pytest.mark.parametrize('form,filename', [
        ({'targetPercentage': '0'}, 'a.jpg'),
        ({'targetPercentage': 'half'}, 'a.jpg'),
        ({'outputFormat': 'gif'}, 'a.jpg'),
        ({'outputFormat': 'tiff'}, 'a.jpg'),
        ({'outputFormat': 'original'}, 'a.bmp'),
        ({'outputFormat': 'heic'}, 'a.jpg'),
        ({'stripMetadata': 'sometimes'}, 'a.jpg'),
    ])
    def test_invalid_fields(self, form, filename):
        """Test each rejected field value."""
        ok, options, error = parse_compress_options(MultiDict(form), filename)
        assert not ok
        assert options is None
        assert error


class TestConvertAndResizeOptions:
    """Tests for /convert and /resize form parsing."""

    def test_convert_requires_format(self):
        """Test that outputFormat is mandatory for conversion."""
        ok, _, error = parse_convert_options(MultiDict())
        assert not ok
        assert error == "Output format is required"

    def test_convert_accepts_fixed_quality_formats(self):
        """Test that gif is a valid conversion target."""
        ok, options, _ = parse_convert_options(MultiDict({'outputFormat': 'GIF'}))
        assert ok
        assert options.output_format == 'gif'
        assert options.quality == 90

    def test_resize_requires_a_dimension(self):
        """Test that width or height must be present."""
        ok, _, error = parse_resize_options(MultiDict({'fit': 'cover'}), 'a.png')
        assert not ok
        assert error == "At least width or height is required"

    def test_resize_rejects_unknown_fit(self):
        """Test the fit allow-list."""
        ok, _, error = parse_resize_options(MultiDict({'width': '10', 'fit': 'stretch'}), 'a.png')
        assert not ok
        assert 'Invalid fit' in error

    def test_resize_without_aspect_forces_fill(self):
        """Test that maintainAspectRatio=false means fill."""
        form = MultiDict({'width': '10', 'height': '20', 'fit': 'contain', 'maintainAspectRatio': 'false'})
        ok, options, _ = parse_resize_options(form, 'a.png')
        assert ok
        assert options.fit == 'fill'
        assert options.output_format == 'png'

    def test_resize_dimension_bounds(self):
        """Test the per-dimension limits."""
        ok, _, error = parse_resize_options(MultiDict({'width': '20001'}), 'a.png')
        assert not ok
        assert error == "width must be at most 20000"


class TestPdfOptions:
    """Tests for /images-to-pdf form parsing."""

    def test_defaults(self):
        """Test A4 portrait with no margin."""
        ok, options, _ = parse_pdf_options(MultiDict())
        assert ok
        assert options.page_dimensions == (595, 842)
        assert options.margin_points == 0
        assert options.quality == 90

    def test_landscape_swaps_dimensions(self):
        """Test that landscape swaps width and height."""
        form = MultiDict({'pageSize': 'letter', 'orientation': 'landscape', 'margin': 'medium'})
        ok, options, _ = parse_pdf_options(form)
        assert ok
        assert options.page_dimensions == (792, 612)
        assert options.margin_points == 72

    @pytest.mark.parametrize('form', [
        {'pageSize': 'a3'},
        {'orientation': 'diagonal'},
        {'margin': 'huge'},
        {'quality': '0'},
    ])
    def test_invalid_fields(self, form):
        """Test each rejected field value."""
        ok, options, _ = parse_pdf_options(MultiDict(form))
        assert not ok
        assert options is None
