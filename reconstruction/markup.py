"""Parse translated Markdown into document blocks and render the RTL preview."""
import html
import re
from itertools import groupby
from typing import Iterable, List, Sequence, Tuple

from models import BlockKind, DocumentBlock, TranslationRecord
from .styles import style_for

LIST_START = re.compile(r"^(\* |- |\d+\. )")
LIST_MARKER = re.compile(r"^(?:[*-]|\d+\.)\s+")

PREVIEW_FONT = "'Arial Unicode MS', 'Noto Nastaliq Urdu', sans-serif"


def parse_markdown(text: str, source: str = "", section: int = 0) -> List[DocumentBlock]:
    """
    Classify blank-line separated segments of Markdown.

    '# ' is a level 1 heading, '## ' a level 2 heading, a segment starting
    with '* ', '- ' or '<n>. ' is a list (one item per line), and anything
    else non-blank is a paragraph.
    """
    blocks = []
    normalized = text.replace("\r\n", "\n")

    for segment in normalized.split("\n\n"):
        p = segment.strip()
        if not p:
            continue

        if p.startswith("# "):
            block = DocumentBlock(BlockKind.HEADING1, text=p[2:].strip(), source=source, section=section)
        elif p.startswith("## "):
            block = DocumentBlock(BlockKind.HEADING2, text=p[3:].strip(), source=source, section=section)
        elif LIST_START.match(p):
            items = tuple(
                LIST_MARKER.sub("", line.strip(), count=1)
                for line in p.split("\n")
                if line.strip()
            )
            block = DocumentBlock(BlockKind.LIST, items=items, source=source, section=section)
        else:
            block = DocumentBlock(BlockKind.PARAGRAPH, text=p, source=source, section=section)

        if block.text or block.items:
            blocks.append(block)

    return blocks


def normalize_records(records: Sequence[TranslationRecord]) -> List[DocumentBlock]:
    """Blocks for every record, concatenated in record order."""
    blocks = []
    for section, record in enumerate(records):
        blocks.extend(parse_markdown(record.translated_text, source=record.source, section=section))
    return blocks


def group_sections(blocks: Iterable[DocumentBlock]) -> List[Tuple[str, List[DocumentBlock]]]:
    """Split a block sequence back into (source, blocks) per record."""
    return [
        (group[0].source, group)
        for group in (list(g) for _, g in groupby(blocks, key=lambda b: b.section))
    ]


def _css(kind: BlockKind) -> str:
    style = style_for(kind)
    weight = "font-weight: bold; " if style.bold else ""
    return (
        f"text-align: right; font-size: {style.flow_size:g}pt; color: {style.color}; "
        f"margin-bottom: {style.space_after:g}pt; {weight}".rstrip()
    )


def render_block_html(block: DocumentBlock) -> str:
    css = _css(block.kind)
    if block.kind == BlockKind.HEADING1:
        return f'<h1 style="{css}">{html.escape(block.text)}</h1>'
    if block.kind == BlockKind.HEADING2:
        return f'<h2 style="{css}">{html.escape(block.text)}</h2>'
    if block.kind == BlockKind.LIST:
        items = "".join(f'<li style="{css}">{html.escape(item)}</li>' for item in block.items)
        return f'<ul dir="rtl" style="padding-right: 30pt;">{items}</ul>'
    body = "<br/>".join(html.escape(line) for line in block.text.split("\n"))
    return f'<p style="{css} line-height: 2.2;">{body}</p>'


def render_html(blocks: Sequence[DocumentBlock], show_sources: bool = False) -> str:
    """Right-to-left HTML fragment, one <div> per translated record."""
    parts = []
    for source, section_blocks in group_sections(blocks):
        label = ""
        if show_sources:
            label = (
                '<div dir="ltr" style="font-size: 8pt; color: #94a3b8;">'
                f"SOURCE: {html.escape(source)}</div>"
            )
        body = "".join(render_block_html(block) for block in section_blocks)
        parts.append(
            f'<div dir="rtl" style="font-family: {PREVIEW_FONT}; margin-bottom: 40pt;">'
            f"{label}{body}</div>"
        )
    return "".join(parts)
