import pytest

from conftest import make_image, make_pdf
from errors import SizeLimitExceeded, UnsupportedFileType
from ingestion import check_size_limits, check_sizes, count_pages, detect_kind, extract_docx_text, plan_units
from ingestion.pdf_rasterizer import open_pdf, render_page
from models import FileKind, PayloadKind, UploadedFile

JPEG_MAGIC = b"\xff\xd8"


def test_detect_kind_by_extension_and_content_type():
    assert detect_kind(UploadedFile("a.PDF", b"")) == FileKind.PAGED_DOCUMENT
    assert detect_kind(UploadedFile("blob", b"", "application/pdf")) == FileKind.PAGED_DOCUMENT
    assert detect_kind(UploadedFile("a.docx", b"")) == FileKind.TEXT_CONTAINER
    assert detect_kind(UploadedFile("a.jpeg", b"")) == FileKind.RASTER_IMAGE
    assert detect_kind(UploadedFile("scan", b"", "image/webp")) == FileKind.RASTER_IMAGE
    assert detect_kind(UploadedFile("a.txt", b"", "text/plain")) == FileKind.UNSUPPORTED


def test_aggregate_size_limit(config):
    config.max_total_bytes = 10
    files = [UploadedFile("a.png", b"x" * 6), UploadedFile("b.png", b"x" * 6)]
    with pytest.raises(SizeLimitExceeded) as excinfo:
        check_size_limits(files, config)
    assert excinfo.value.size == 12
    assert excinfo.value.limit == 10


def test_single_file_limit_names_the_file(config):
    config.max_single_file_bytes = 5
    with pytest.raises(SizeLimitExceeded, match="big.pdf"):
        check_size_limits([UploadedFile("big.pdf", b"x" * 6)], config, single_file=True)


def test_plan_rejects_oversized_upload_before_opening_files(config):
    config.max_total_bytes = 3
    # Not a valid PDF: the size check must fire before any parsing
    with pytest.raises(SizeLimitExceeded):
        plan_units([UploadedFile("a.pdf", b"garbage")], config)


def test_pdf_yields_one_raster_unit_per_page(config, pdf_upload):
    with plan_units([pdf_upload], config) as plan:
        assert plan.total_units == 3
        units = list(plan)

    assert [u.source_label for u in units] == ["book.pdf (P1)", "book.pdf (P2)", "book.pdf (P3)"]
    assert [u.index for u in units] == [0, 1, 2]
    for unit in units:
        assert unit.payload_kind == PayloadKind.RASTER_IMAGE
        assert unit.mime_type == "image/jpeg"
        assert unit.payload.startswith(JPEG_MAGIC)


def test_count_pages(pdf_upload):
    assert count_pages(pdf_upload.data) == 3


def test_render_page_is_deterministic(pdf_upload):
    with open_pdf(pdf_upload.data) as pdf:
        first = render_page(pdf, 1, scale=1.5, quality=80)
        second = render_page(pdf, 1, scale=1.5, quality=80)
    assert first == second


def test_render_scale_controls_resolution(pdf_upload):
    from PIL import Image
    import io

    with open_pdf(pdf_upload.data) as pdf:
        small = Image.open(io.BytesIO(render_page(pdf, 0, scale=1.0)))
        large = Image.open(io.BytesIO(render_page(pdf, 0, scale=1.5)))
    assert large.width == pytest.approx(small.width * 1.5, abs=2)


def test_docx_becomes_single_text_unit(config, docx_upload):
    with plan_units([docx_upload], config) as plan:
        units = list(plan)

    assert len(units) == 1
    assert units[0].source_label == "notes.docx"
    assert units[0].payload_kind == PayloadKind.RAW_TEXT
    assert units[0].payload == "Chapter one\n\nIt was a dark night."


def test_extract_docx_rejects_non_docx():
    with pytest.raises(UnsupportedFileType, match="not a valid Word document"):
        extract_docx_text(b"plain text", "fake.docx")


def test_png_is_sent_as_is(config, image_upload):
    with plan_units([image_upload], config) as plan:
        (unit,) = list(plan)
    assert unit.source_label == "cover.png"
    assert unit.mime_type == "image/png"
    assert unit.payload == image_upload.data


def test_bmp_is_reencoded_to_jpeg(config):
    upload = UploadedFile("scan.bmp", make_image("BMP"), "image/bmp")
    with plan_units([upload], config) as plan:
        (unit,) = list(plan)
    assert unit.mime_type == "image/jpeg"
    assert unit.payload.startswith(JPEG_MAGIC)


def test_unsupported_files_are_skipped_with_warnings(config, image_upload):
    files = [
        UploadedFile("readme.txt", b"hello", "text/plain"),
        UploadedFile("old.doc", b"\xd0\xcf\x11\xe0"),
        UploadedFile("broken.pdf", b"this is not a pdf", "application/pdf"),
        image_upload,
    ]
    with plan_units(files, config) as plan:
        assert plan.total_units == 1
        sources = [w.source for w in plan.warnings]

    assert sources == ["readme.txt", "old.doc", "broken.pdf"]
    assert ".docx" in plan.warnings[1].message


def test_mixed_upload_keeps_upload_order(config, docx_upload, image_upload):
    pdf = UploadedFile("short.pdf", make_pdf(["one", "two"]), "application/pdf")
    with plan_units([image_upload, pdf, docx_upload], config) as plan:
        labels = [spec.source_label for spec in plan.units]
        indices = [spec.index for spec in plan.units]

    assert labels == ["cover.png", "short.pdf (P1)", "short.pdf (P2)", "notes.docx"]
    assert indices == [0, 1, 2, 3]


def test_check_sizes_on_declared_sizes(config):
    config.max_total_bytes = 100
    check_sizes([("a.pdf", 60), ("b.png", 40)], config)
    with pytest.raises(SizeLimitExceeded) as excinfo:
        check_sizes([("a.pdf", 60), ("b.png", 41)], config)
    assert excinfo.value.size == 101

    config.max_single_file_bytes = 50
    with pytest.raises(SizeLimitExceeded, match="a.pdf"):
        check_sizes([("a.pdf", 60)], config, single_file=True)
