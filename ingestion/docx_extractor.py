"""DOCX raw text extraction."""
import io
import zipfile

from docx import Document

from errors import UnsupportedFileType


def _is_valid_docx(data: bytes) -> bool:
    """Check if data is a valid .docx file (Office Open XML format)."""
    try:
        # .docx files are actually ZIP archives
        with zipfile.ZipFile(io.BytesIO(data), 'r') as zip_ref:
            return 'word/document.xml' in zip_ref.namelist()
    except (zipfile.BadZipFile, OSError):
        return False


def extract_docx_text(data: bytes, filename: str = "document.docx") -> str:
    """
    Extract raw text from a Word document.

    Paragraphs are separated by a blank line; table cells follow the body
    text in row order, one per paragraph.
    """
    if not _is_valid_docx(data):
        raise UnsupportedFileType(
            f"The file '{filename}' is not a valid Word document (.docx). "
            "It may be corrupted, or an old .doc file with the wrong extension."
        )

    doc = Document(io.BytesIO(data))

    parts = []
    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            parts.append(text)

    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                text = cell.text.strip()
                if text:
                    parts.append(text)

    return "\n\n".join(parts)
