"""Reconstruction layer - normalize translated Markdown and export manuscripts."""
from .builders import build_docx, build_pdf, layout_pages
from .markup import group_sections, normalize_records, parse_markdown, render_html

__all__ = [
    "build_docx",
    "build_pdf",
    "group_sections",
    "layout_pages",
    "normalize_records",
    "parse_markdown",
    "render_html",
]
