"""PDF page rasterization using pdfplumber."""
import io
import logging

import pdfplumber
from PIL import Image

logger = logging.getLogger(__name__)

# PDF user space is 72 points per inch
BASE_RESOLUTION = 72


def open_pdf(data: bytes) -> pdfplumber.PDF:
    """Open a PDF held in memory. The caller owns the returned handle."""
    return pdfplumber.open(io.BytesIO(data))


def count_pages(data: bytes) -> int:
    """Return the number of pages in a PDF."""
    with open_pdf(data) as pdf:
        return len(pdf.pages)


def encode_jpeg(image: Image.Image, quality: int = 80) -> bytes:
    """Encode a PIL image as JPEG bytes."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffered = io.BytesIO()
    image.save(buffered, format="JPEG", quality=quality)
    return buffered.getvalue()


def render_page(
    pdf: pdfplumber.PDF,
    page_index: int,
    scale: float = 1.5,
    quality: int = 80
) -> bytes:
    """
    Render one page to a JPEG suitable for the vision model.

    Args:
        pdf: Open pdfplumber document
        page_index: 0-indexed page number
        scale: Upscaling factor relative to 72 DPI
        quality: JPEG quality (1-95)

    Returns:
        JPEG bytes
    """
    page = pdf.pages[page_index]
    try:
        page_image = page.to_image(resolution=BASE_RESOLUTION * scale)
        bitmap = page_image.original
        try:
            return encode_jpeg(bitmap, quality)
        finally:
            bitmap.close()
    finally:
        # Drop the page's cached layout objects so large documents
        # never hold more than one rendered page at a time
        page.close()
