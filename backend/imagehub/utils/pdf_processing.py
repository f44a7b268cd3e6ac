"""
PDF helpers: pull embedded raster images out of a PDF and assemble images
into a PDF, one image per page.
"""
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Tuple

import pikepdf
from pikepdf import Name, PdfImage

from imagehub.compression.codec import ImageCodec
from imagehub.utils.validation import PdfOptions


logger = logging.getLogger(__name__)


class PdfProcessingError(Exception):
    """Raised when a PDF cannot be opened or produced."""

    kind = 'pdf_error'


@dataclass(frozen=True)
class ExtractedImage:
    page: int
    name: str
    data: bytes
    extension: str


def extract_images(pdf_bytes: bytes) -> Tuple[int, List[ExtractedImage]]:
    """
    Extracts embedded images from every page of a PDF.

    Images referenced from several pages are returned once, for the first
    page that uses them. Images pikepdf cannot decode are skipped.

    Args:
        pdf_bytes: Raw PDF data

    Returns:
        Tuple of (page_count, extracted_images)

    Raises:
        PdfProcessingError: If the PDF cannot be opened
    """
    try:
        pdf = pikepdf.open(BytesIO(pdf_bytes))
    except pikepdf.PdfError as e:
        raise PdfProcessingError(f"Could not open PDF: {e}") from e

    extracted: List[ExtractedImage] = []
    seen = set()
    with pdf:
        page_count = len(pdf.pages)
        for page_number, page in enumerate(pdf.pages, start=1):
            for name, raw_image in page.images.items():
                if raw_image.objgen in seen and raw_image.objgen != (0, 0):
                    continue
                seen.add(raw_image.objgen)
                buffer = BytesIO()
                try:
                    extension = PdfImage(raw_image).extract_to(stream=buffer)
                except Exception as e:
                    logger.warning(f'Skipping image {name} on page {page_number}: {e}')
                    continue
                extracted.append(ExtractedImage(
                    page=page_number,
                    name=str(name).lstrip('/'),
                    data=buffer.getvalue(),
                    extension=extension,
                ))
    return page_count, extracted


def _placement(image_size: Tuple[int, int], page_size: Tuple[int, int], margin: int) -> Tuple[float, float, float, float]:
    """Scale an image to fit the content box and center it: (x, y, width, height)."""
    page_w, page_h = page_size
    content_w = page_w - 2 * margin
    content_h = page_h - 2 * margin
    img_w, img_h = image_size
    scale = min(content_w / img_w, content_h / img_h)
    draw_w, draw_h = img_w * scale, img_h * scale
    x = margin + (content_w - draw_w) / 2
    y = margin + (content_h - draw_h) / 2
    return x, y, draw_w, draw_h


def images_to_pdf(images: List[bytes], options: PdfOptions, codec: ImageCodec = None) -> Tuple[bytes, int]:
    """
    Builds a PDF with one page per image.

    Every image is orientation-normalized, re-encoded as JPEG at
    ``options.quality`` and scaled to fit the page content box.

    Args:
        images: Encoded image payloads, in page order
        options: Validated page layout options
        codec: Codec to use (a default ImageCodec if omitted)

    Returns:
        Tuple of (pdf_bytes, page_count)
    """
    if not images:
        raise PdfProcessingError("No images to assemble")

    codec = codec or ImageCodec()
    page_size = options.page_dimensions
    margin = options.margin_points

    output = BytesIO()
    with pikepdf.new() as pdf:
        for image_bytes in images:
            img, _ = codec.decode(image_bytes)
            img = codec.normalize_orientation(img)
            jpeg = codec.encode(img, 'jpeg', options.quality)

            image_obj = pikepdf.Stream(pdf, jpeg)
            image_obj.Type = Name.XObject
            image_obj.Subtype = Name.Image
            image_obj.Width = img.width
            image_obj.Height = img.height
            image_obj.ColorSpace = Name.DeviceRGB
            image_obj.BitsPerComponent = 8
            image_obj.Filter = Name.DCTDecode

            page = pdf.add_blank_page(page_size=page_size)
            resource = page.add_resource(image_obj, Name.XObject, prefix='Im')
            x, y, width, height = _placement(img.size, page_size, margin)
            content = f"q {width:.2f} 0 0 {height:.2f} {x:.2f} {y:.2f} cm {resource} Do Q".encode()
            page.obj.Contents = pikepdf.Stream(pdf, content)

        pdf.save(output)
    return output.getvalue(), len(images)
