"""Document exporters - build DOCX and PDF manuscripts from document blocks."""
import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from models import BlockKind, DocumentBlock
from .markup import group_sections
from .styles import hex_to_rgb, style_for

logger = logging.getLogger(__name__)

LIST_BULLET = "•"
FLOW_FONT = "Arial Unicode MS"
EMBEDDED_FONT_NAME = "ManuscriptFont"
# Baseline position within a PDF line box
BASELINE_RATIO = 0.75


# ---------------------------------------------------------------------------
# Flow export (DOCX)
# ---------------------------------------------------------------------------

def _set_paragraph_rtl(para) -> None:
    """Mark a paragraph right-to-left and right aligned."""
    pPr = para._p.get_or_add_pPr()
    bidi = OxmlElement('w:bidi')
    bidi.set(qn('w:val'), "1")
    pPr.append(bidi)
    # w:jc must follow w:bidi in pPr
    para.alignment = WD_ALIGN_PARAGRAPH.RIGHT


def _style_run(run, color: str, size: float, bold: bool) -> None:
    """Apply color and size to both the Latin and the complex-script properties."""
    run.font.name = FLOW_FONT
    run.font.size = Pt(size)
    run.font.bold = bold
    run.font.color.rgb = RGBColor(*hex_to_rgb(color))

    rPr = run._r.get_or_add_rPr()
    rFonts = rPr.get_or_add_rFonts()
    rFonts.set(qn('w:cs'), FLOW_FONT)
    size_cs = OxmlElement('w:szCs')
    size_cs.set(qn('w:val'), str(int(size * 2)))
    rPr.find(qn('w:sz')).addnext(size_cs)
    if bold:
        rPr.find(qn('w:b')).addnext(OxmlElement('w:bCs'))
    rPr.append(OxmlElement('w:rtl'))


def _add_styled_paragraph(doc, text: str, kind: BlockKind, style_name: Optional[str] = None):
    style = style_for(kind)
    para = doc.add_paragraph(style=style_name)
    _set_paragraph_rtl(para)
    para.paragraph_format.space_after = Pt(style.space_after)

    lines = text.split("\n")
    for idx, line in enumerate(lines):
        run = para.add_run(line)
        _style_run(run, style.color, style.flow_size, style.bold)
        if idx < len(lines) - 1:
            run.add_break()
    return para


def build_docx(
    blocks: Sequence[DocumentBlock],
    title: str = "Unified Urdu Manuscript",
    output_path: Optional[str] = None
) -> bytes:
    """
    Build one continuous right-to-left Word document.

    Each translated record becomes a run of paragraphs, followed by a
    spacer; the document is not paginated by us.

    Returns:
        The DOCX bytes (also written to output_path when given)
    """
    doc = Document()

    heading = doc.add_paragraph()
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    heading.paragraph_format.space_after = Pt(50)
    run = heading.add_run(title)
    run.font.size = Pt(32)
    run.font.bold = True

    for source, section_blocks in group_sections(blocks):
        for block in section_blocks:
            if block.kind == BlockKind.HEADING1:
                _add_styled_paragraph(doc, block.text, block.kind, "Heading 1")
            elif block.kind == BlockKind.HEADING2:
                _add_styled_paragraph(doc, block.text, block.kind, "Heading 2")
            elif block.kind == BlockKind.LIST:
                for item in block.items:
                    _add_styled_paragraph(doc, item, block.kind, "List Bullet")
            else:
                _add_styled_paragraph(doc, block.text, block.kind)

        # Section spacer
        spacer = doc.add_paragraph()
        spacer.paragraph_format.space_after = Pt(40)

    buffer = io.BytesIO()
    doc.save(buffer)
    data = buffer.getvalue()

    if output_path:
        with open(output_path, "wb") as f:
            f.write(data)
    return data


# ---------------------------------------------------------------------------
# Paginated export (PDF)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PageGeometry:
    """Page layout in millimetres, y measured down from the top edge."""
    width: float = A4[0] / mm
    height: float = A4[1] / mm
    top: float = 20.0
    bottom: float = 280.0
    right: float = 190.0
    text_width: float = 180.0
    block_gap: float = 8.0
    section_gap: float = 5.0
    title_size: float = 22.0
    title_gap: float = 20.0


@dataclass(frozen=True)
class PlacedLine:
    """One wrapped line at its final position."""
    page: int
    y: float                # Top of the line box, mm from the top edge
    text: str
    kind: BlockKind
    font_size: float
    line_height: float
    color: str


def _wrap(text: str, font_name: str, font_size: float, width_mm: float) -> List[str]:
    return simpleSplit(text, font_name, font_size, width_mm * mm) or [""]


def _block_lines(block: DocumentBlock, font_name: str, geometry: PageGeometry) -> List[str]:
    style = style_for(block.kind)
    if block.kind == BlockKind.LIST:
        lines = []
        for item in block.items:
            lines.extend(_wrap(f"{LIST_BULLET} {item}", font_name, style.page_size, geometry.text_width))
        return lines
    return _wrap(block.text, font_name, style.page_size, geometry.text_width)


def layout_pages(
    blocks: Sequence[DocumentBlock],
    font_name: str = "Helvetica",
    geometry: PageGeometry = PageGeometry()
) -> List[PlacedLine]:
    """
    Place every wrapped line of every block on fixed-size pages.

    A line never extends past ``geometry.bottom``: when the cursor would
    overflow, a new page starts and the cursor returns to ``geometry.top``.
    The title occupies the top of page 0.
    """
    placed = []
    page = 0
    y = geometry.top + geometry.title_gap

    for _, section_blocks in group_sections(blocks):
        for block in section_blocks:
            style = style_for(block.kind)
            for line in _block_lines(block, font_name, geometry):
                if y + style.line_height > geometry.bottom:
                    page += 1
                    y = geometry.top
                placed.append(PlacedLine(
                    page=page,
                    y=y,
                    text=line,
                    kind=block.kind,
                    font_size=style.page_size,
                    line_height=style.line_height,
                    color=style.color,
                ))
                y += style.line_height
            y += geometry.block_gap
        y += geometry.section_gap

    return placed


def register_font(font_path: Optional[str]) -> str:
    """Register a TTF for non-Latin scripts; fall back to Helvetica."""
    if not font_path:
        return "Helvetica"
    if EMBEDDED_FONT_NAME not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(EMBEDDED_FONT_NAME, font_path))
    return EMBEDDED_FONT_NAME


def build_pdf(
    blocks: Sequence[DocumentBlock],
    title: str = "Urdu Book Manuscript",
    output_path: Optional[str] = None,
    font_path: Optional[str] = None,
    geometry: PageGeometry = PageGeometry()
) -> bytes:
    """
    Build a fixed-page A4 manuscript with right-aligned text.

    Returns:
        The PDF bytes (also written to output_path when given)
    """
    font_name = register_font(font_path)
    lines = layout_pages(blocks, font_name=font_name, geometry=geometry)

    buffer = io.BytesIO()
    page_width, page_height = geometry.width * mm, geometry.height * mm
    c = canvas.Canvas(buffer, pagesize=(page_width, page_height))
    c.setTitle(title)

    # ReportLab: (0,0) is bottom-left, y increases upward
    c.setFillColorRGB(0, 0, 0)
    c.setFont(font_name, geometry.title_size)
    c.drawCentredString(page_width / 2, page_height - geometry.top * mm, title)

    current_page = 0
    for line in lines:
        if line.page != current_page:
            c.showPage()
            current_page = line.page
        r, g, b = hex_to_rgb(line.color)
        c.setFillColorRGB(r / 255, g / 255, b / 255)
        c.setFont(font_name, line.font_size)
        baseline = line.y + line.line_height * BASELINE_RATIO
        c.drawRightString(geometry.right * mm, page_height - baseline * mm, line.text)

    c.save()
    data = buffer.getvalue()
    logger.info("Built PDF with %d pages and %d lines", current_page + 1, len(lines))

    if output_path:
        with open(output_path, "wb") as f:
            f.write(data)
    return data
