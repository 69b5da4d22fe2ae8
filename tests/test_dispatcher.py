import asyncio
import json

from conftest import FakeClient, make_pdf
from errors import MalformedResponse
from ingestion import plan_units
from models import PayloadKind, UploadedFile, WorkUnit
from translation import PLACEHOLDER_TEXT, TranslationDispatcher, parse_translation_response


def test_parse_valid_reply():
    raw = json.dumps({"original": "Hello", "translated": "# سلام"})
    assert parse_translation_response(raw) == ("Hello", "# سلام")


def test_parse_strips_code_fences():
    raw = '```json\n{"original": "a", "translated": "b"}\n```'
    assert parse_translation_response(raw) == ("a", "b")


def test_parse_degrades_to_placeholder():
    assert parse_translation_response(None) == ("", PLACEHOLDER_TEXT)
    assert parse_translation_response("") == ("", PLACEHOLDER_TEXT)
    assert parse_translation_response("not json") == ("", PLACEHOLDER_TEXT)
    assert parse_translation_response("[1, 2]") == ("", PLACEHOLDER_TEXT)
    assert parse_translation_response('{"original": "x", "translated": "  "}') == ("x", PLACEHOLDER_TEXT)
    assert parse_translation_response('{"original": 5, "translated": 7}') == ("", PLACEHOLDER_TEXT)


def test_text_unit_keeps_its_own_text_as_original(config):
    client = FakeClient(replies={"notes.docx": json.dumps({"translated": "ترجمہ"})})
    dispatcher = TranslationDispatcher(config, client)
    unit = WorkUnit(0, "notes.docx", PayloadKind.RAW_TEXT, "Source text")

    record = asyncio.run(dispatcher.translate_unit(unit, "precise"))

    assert record.original_text == "Source text"
    assert record.translated_text == "ترجمہ"
    assert client.calls == [("notes.docx", "precise", PayloadKind.RAW_TEXT)]


def test_sequential_dispatch_sends_one_call_per_unit_in_order(config, pdf_upload):
    client = FakeClient()
    done = []
    with plan_units([pdf_upload], config) as plan:
        result = asyncio.run(TranslationDispatcher(config, client).dispatch(
            plan,
            on_unit_done=lambda source, record, warning: done.append(source),
        ))

    labels = ["book.pdf (P1)", "book.pdf (P2)", "book.pdf (P3)"]
    assert [call[0] for call in client.calls] == labels
    assert done == labels
    assert [r.source for r in result.records] == labels
    assert client.max_in_flight == 1
    assert not result.warnings and not result.cancelled


def test_failed_units_are_skipped_and_reported(config, pdf_upload):
    client = FakeClient(fail_sources={"book.pdf (P2)"})
    outcomes = []
    with plan_units([pdf_upload], config) as plan:
        result = asyncio.run(TranslationDispatcher(config, client).dispatch(
            plan,
            on_unit_done=lambda source, record, warning: outcomes.append((source, record is not None, warning)),
        ))

    assert [r.source for r in result.records] == ["book.pdf (P1)", "book.pdf (P3)"]
    assert len(result.warnings) == 1
    assert result.warnings[0].source == "book.pdf (P2)"
    assert "HTTP 500" in result.warnings[0].message
    assert [o[1] for o in outcomes] == [True, False, True]


def test_concurrent_dispatch_returns_records_in_unit_order(config):
    config.translation_concurrency = 3
    pages = [f"page {i}" for i in range(6)]
    upload = UploadedFile("big.pdf", make_pdf(pages), "application/pdf")
    # Earlier pages finish last
    delays = {f"big.pdf (P{i + 1})": 0.05 * (6 - i) for i in range(6)}
    client = FakeClient(delays=delays)

    with plan_units([upload], config) as plan:
        result = asyncio.run(TranslationDispatcher(config, client).dispatch(plan))

    assert client.max_in_flight == 3
    assert [r.unit_index for r in result.records] == list(range(6))
    assert [r.source for r in result.records] == [f"big.pdf (P{i + 1})" for i in range(6)]


def test_cancellation_stops_between_units(config, pdf_upload):
    client = FakeClient()
    cancel_event = asyncio.Event()

    def on_done(source, record, warning):
        cancel_event.set()

    with plan_units([pdf_upload], config) as plan:
        result = asyncio.run(TranslationDispatcher(config, client).dispatch(
            plan, on_unit_done=on_done, cancel_event=cancel_event,
        ))

    assert result.cancelled
    assert len(client.calls) == 1
    assert [r.source for r in result.records] == ["book.pdf (P1)"]


class UnreadableReplyClient(FakeClient):
    async def translate_unit(self, unit, quality="fast"):
        self.calls.append((unit.source_label, quality, unit.payload_kind))
        raise MalformedResponse("returned a non-JSON body")


def test_unreadable_reply_keeps_the_unit_with_a_placeholder(config, image_upload):
    client = UnreadableReplyClient()
    with plan_units([image_upload], config) as plan:
        result = asyncio.run(TranslationDispatcher(config, client).dispatch(plan))

    assert len(client.calls) == 1
    assert result.warnings == []
    (record,) = result.records
    assert record.source == "cover.png"
    assert record.translated_text == PLACEHOLDER_TEXT
