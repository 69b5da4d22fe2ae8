from models import BlockKind, DocumentBlock, TranslationRecord
from reconstruction import group_sections, normalize_records, parse_markdown, render_html
from reconstruction.styles import ACCENT_COLOR, TEXT_COLOR


def test_heading_paragraph_and_list():
    blocks = parse_markdown("# Title\n\nParagraph one.\n\n* item1\n* item2")
    assert blocks == [
        DocumentBlock.heading1("Title"),
        DocumentBlock.paragraph("Paragraph one."),
        DocumentBlock.list_block(["item1", "item2"]),
    ]


def test_second_level_heading_and_numbered_list():
    blocks = parse_markdown("## Part A\n\n1. first\n2. second\n10. tenth")
    assert blocks[0] == DocumentBlock.heading2("Part A")
    assert blocks[1].kind == BlockKind.LIST
    assert blocks[1].items == ("first", "second", "tenth")


def test_dash_list_and_mixed_markers():
    blocks = parse_markdown("- alpha\n* beta\n- gamma")
    assert blocks == [DocumentBlock.list_block(["alpha", "beta", "gamma"])]


def test_blank_segments_are_dropped():
    assert parse_markdown("\n\n   \n\n") == []
    blocks = parse_markdown("one\n\n\n\n\ntwo")
    assert [b.text for b in blocks] == ["one", "two"]


def test_paragraph_keeps_single_newlines():
    (block,) = parse_markdown("line one\nline two")
    assert block.kind == BlockKind.PARAGRAPH
    assert block.text == "line one\nline two"


def test_marker_without_space_is_a_paragraph():
    blocks = parse_markdown("#hashtag\n\n*emphasis*")
    assert [b.kind for b in blocks] == [BlockKind.PARAGRAPH, BlockKind.PARAGRAPH]


def test_windows_line_endings():
    blocks = parse_markdown("# T\r\n\r\nBody")
    assert blocks == [DocumentBlock.heading1("T"), DocumentBlock.paragraph("Body")]


def test_normalize_is_idempotent_and_tags_sections():
    records = [
        TranslationRecord("A", "orig", "# A\n\ntext a", 0),
        TranslationRecord("B", "orig", "text b\n\n- x", 1),
    ]
    first = normalize_records(records)
    second = normalize_records(records)
    assert first == second
    assert [(b.source, b.section) for b in first] == [("A", 0), ("A", 0), ("B", 1), ("B", 1)]


def test_group_sections_splits_same_named_records():
    records = [
        TranslationRecord("scan.png", "", "one", 0),
        TranslationRecord("scan.png", "", "two", 1),
    ]
    groups = group_sections(normalize_records(records))
    assert len(groups) == 2
    assert [g[1][0].text for g in groups] == ["one", "two"]


def test_render_html_is_rtl_escaped_and_styled():
    blocks = normalize_records([
        TranslationRecord("A", "", "# Head <1>\n\n## Sub\n\nplain & simple\nnext\n\n* item", 0),
    ])
    html = render_html(blocks)

    assert html.startswith('<div dir="rtl"')
    assert "Head &lt;1&gt;" in html
    assert "plain &amp; simple<br/>next" in html
    assert f"color: {ACCENT_COLOR}" in html.split("</h1>")[0]
    assert f"color: {ACCENT_COLOR}" not in html.split("</h1>")[1]
    assert f"color: {TEXT_COLOR}" in html
    assert '<ul dir="rtl"' in html


def test_render_html_sources_and_section_order():
    blocks = normalize_records([
        TranslationRecord("A.pdf (P1)", "", "alpha", 0),
        TranslationRecord("B.png", "", "beta", 1),
    ])
    html = render_html(blocks, show_sources=True)
    assert html.count('<div dir="rtl"') == 2
    assert html.index("SOURCE: A.pdf (P1)") < html.index("alpha") < html.index("SOURCE: B.png") < html.index("beta")
