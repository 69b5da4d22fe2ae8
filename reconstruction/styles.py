"""Style table shared by the preview and both exporters."""
from dataclasses import dataclass
from typing import Dict, Tuple

from models import BlockKind

ACCENT_COLOR = "#1e40af"
TEXT_COLOR = "#000000"


@dataclass(frozen=True)
class BlockStyle:
    color: str              # Hex RGB
    flow_size: float        # Points, for the HTML preview and DOCX export
    page_size: float        # Points, for the paginated PDF export
    line_height: float      # Millimetres per wrapped PDF line
    space_after: float      # Points after the block in flowed output
    bold: bool = False


STYLES: Dict[BlockKind, BlockStyle] = {
    BlockKind.HEADING1: BlockStyle(ACCENT_COLOR, flow_size=26, page_size=18, line_height=9, space_after=20, bold=True),
    BlockKind.HEADING2: BlockStyle(TEXT_COLOR, flow_size=20, page_size=15, line_height=8, space_after=15, bold=True),
    BlockKind.PARAGRAPH: BlockStyle(TEXT_COLOR, flow_size=15, page_size=12, line_height=7, space_after=15),
    BlockKind.LIST: BlockStyle(TEXT_COLOR, flow_size=15, page_size=11, line_height=7, space_after=8),
}


def style_for(kind: BlockKind) -> BlockStyle:
    return STYLES[kind]


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """'#1e40af' -> (30, 64, 175)"""
    value = color.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
