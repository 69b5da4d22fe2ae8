"""Ingestion layer - turn uploads into translation work units."""
from .docx_extractor import extract_docx_text
from .ingestor import IngestPlan, check_size_limits, check_sizes, detect_kind, plan_units
from .pdf_rasterizer import count_pages, render_page

__all__ = [
    "IngestPlan",
    "check_size_limits",
    "check_sizes",
    "count_pages",
    "detect_kind",
    "extract_docx_text",
    "plan_units",
    "render_page",
]
