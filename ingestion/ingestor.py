"""Turn uploaded files into an ordered plan of translation work units."""
import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import pdfplumber
from PIL import Image, UnidentifiedImageError

from config import Config
from errors import FileWarning, SizeLimitExceeded, UnsupportedFileType
from models import FileKind, PayloadKind, UploadedFile, WorkUnit
from .docx_extractor import extract_docx_text
from .pdf_rasterizer import encode_jpeg, open_pdf, render_page

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp", ".tif", ".tiff", ".heic", ".heif"}

# Formats the vision model accepts as-is; everything else is re-encoded to JPEG
PASSTHROUGH_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP"}


def detect_kind(upload: UploadedFile) -> FileKind:
    """Detect file kind from content type and extension."""
    ext = Path(upload.filename).suffix.lower()
    content_type = (upload.content_type or "").lower()

    if ext == ".pdf" or content_type == "application/pdf":
        return FileKind.PAGED_DOCUMENT
    if ext == ".docx":
        return FileKind.TEXT_CONTAINER
    if ext in IMAGE_EXTENSIONS or content_type.startswith("image/"):
        return FileKind.RASTER_IMAGE
    return FileKind.UNSUPPORTED


def check_size_limits(
    files: Sequence[UploadedFile],
    config: Config,
    single_file: bool = False
) -> None:
    """
    Reject an upload that is over the size ceiling.

    The batch flow enforces an aggregate ceiling; the single-document flow
    enforces the smaller per-file ceiling.
    """
    check_sizes([(upload.filename, upload.size) for upload in files], config, single_file)


def check_sizes(
    sizes: Sequence[Tuple[str, int]],
    config: Config,
    single_file: bool = False
) -> None:
    """Size check on (filename, byte count) pairs, usable before any body is read."""
    if single_file:
        for filename, size in sizes:
            if size > config.max_single_file_bytes:
                raise SizeLimitExceeded(size, config.max_single_file_bytes, filename)
        return

    total = sum(size for _, size in sizes)
    if total > config.max_total_bytes:
        raise SizeLimitExceeded(total, config.max_total_bytes)


def _prepare_image(upload: UploadedFile, quality: int) -> tuple:
    """Validate an uploaded image and return (mime_type, bytes) for transmission."""
    try:
        with Image.open(io.BytesIO(upload.data)) as image:
            fmt = image.format
            if fmt in PASSTHROUGH_IMAGE_FORMATS:
                return Image.MIME[fmt], upload.data
            return "image/jpeg", encode_jpeg(image, quality)
    except (UnidentifiedImageError, OSError) as e:
        raise UnsupportedFileType(f"'{upload.filename}' is not a readable image: {e}") from e


@dataclass
class UnitSpec:
    """A planned work unit. PDF pages are rendered only when loaded."""
    index: int
    source_label: str
    payload_kind: PayloadKind
    file_index: int
    page_index: Optional[int] = None
    payload: Union[bytes, str, None] = None
    mime_type: str = "text/plain"


class IngestPlan:
    """
    Ordered work units for one upload, plus warnings for skipped files.

    Holds open PDF handles until closed; use as a context manager.
    """

    def __init__(self, config: Config):
        self.config = config
        self.units: List[UnitSpec] = []
        self.warnings: List[FileWarning] = []
        self._documents: Dict[int, pdfplumber.PDF] = {}
        self._render_lock = threading.Lock()

    @property
    def total_units(self) -> int:
        return len(self.units)

    def load(self, spec: UnitSpec) -> WorkUnit:
        """Materialize a unit, rasterizing its page if it is a PDF page."""
        if spec.page_index is not None:
            # pdfplumber documents are not safe to render from two threads
            with self._render_lock:
                payload = render_page(
                    self._documents[spec.file_index],
                    spec.page_index,
                    scale=self.config.render_scale,
                    quality=self.config.jpeg_quality,
                )
            return WorkUnit(
                index=spec.index,
                source_label=spec.source_label,
                payload_kind=PayloadKind.RASTER_IMAGE,
                payload=payload,
                mime_type="image/jpeg",
            )

        return WorkUnit(
            index=spec.index,
            source_label=spec.source_label,
            payload_kind=spec.payload_kind,
            payload=spec.payload,
            mime_type=spec.mime_type,
        )

    def __iter__(self) -> Iterator[WorkUnit]:
        for spec in self.units:
            yield self.load(spec)

    def close(self) -> None:
        for pdf in self._documents.values():
            pdf.close()
        self._documents.clear()

    def __enter__(self) -> "IngestPlan":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def plan_units(
    files: Sequence[UploadedFile],
    config: Config,
    single_file: bool = False
) -> IngestPlan:
    """
    Size-check the upload and enumerate its work units.

    Every PDF is opened and its pages counted before this returns, so the
    total unit count is known before any translation starts. Unsupported or
    unreadable files emit no unit and are recorded as warnings.
    """
    check_size_limits(files, config, single_file=single_file)

    plan = IngestPlan(config)
    try:
        for file_index, upload in enumerate(files):
            _plan_file(plan, file_index, upload)
    except Exception:
        plan.close()
        raise

    logger.info(
        "Planned %d work units from %d files (%d skipped)",
        plan.total_units, len(files), len(plan.warnings)
    )
    return plan


def _plan_file(plan: IngestPlan, file_index: int, upload: UploadedFile) -> None:
    kind = detect_kind(upload)

    try:
        if kind == FileKind.PAGED_DOCUMENT:
            try:
                pdf = open_pdf(upload.data)
            except Exception as e:
                raise UnsupportedFileType(f"'{upload.filename}' could not be opened as a PDF: {e}") from e
            try:
                page_count = len(pdf.pages)
            except Exception as e:
                pdf.close()
                raise UnsupportedFileType(f"'{upload.filename}' has an unreadable page tree: {e}") from e
            plan._documents[file_index] = pdf
            for page_index in range(page_count):
                plan.units.append(UnitSpec(
                    index=plan.total_units,
                    source_label=f"{upload.filename} (P{page_index + 1})",
                    payload_kind=PayloadKind.RASTER_IMAGE,
                    file_index=file_index,
                    page_index=page_index,
                    mime_type="image/jpeg",
                ))

        elif kind == FileKind.RASTER_IMAGE:
            mime_type, payload = _prepare_image(upload, plan.config.jpeg_quality)
            plan.units.append(UnitSpec(
                index=plan.total_units,
                source_label=upload.filename,
                payload_kind=PayloadKind.RASTER_IMAGE,
                file_index=file_index,
                payload=payload,
                mime_type=mime_type,
            ))

        elif kind == FileKind.TEXT_CONTAINER:
            text = extract_docx_text(upload.data, upload.filename)
            if not text:
                raise UnsupportedFileType(f"'{upload.filename}' contains no text.")
            plan.units.append(UnitSpec(
                index=plan.total_units,
                source_label=upload.filename,
                payload_kind=PayloadKind.RAW_TEXT,
                file_index=file_index,
                payload=text,
            ))

        else:
            ext = Path(upload.filename).suffix.lower() or "(none)"
            if ext == ".doc":
                message = (
                    f"'{upload.filename}' uses the old binary .doc format. "
                    "Save it as .docx and upload it again."
                )
            else:
                message = f"'{upload.filename}' has an unsupported file type {ext}."
            raise UnsupportedFileType(message)

    except UnsupportedFileType as e:
        logger.warning("Skipping %s: %s", upload.filename, e)
        plan.warnings.append(FileWarning(source=upload.filename, message=str(e)))
