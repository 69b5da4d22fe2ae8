"""Shared fixtures: in-memory documents and a fake remote model."""
import asyncio
import io
import json

import pytest
from docx import Document
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from config import Config
from errors import RemoteCallFailure
from models import ChatReply, GeneratedImage, GroundingSource, UploadedFile


def make_pdf(page_texts):
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    for text in page_texts:
        c.setFont("Helvetica", 14)
        c.drawString(72, 720, text)
        c.showPage()
    c.save()
    return buffer.getvalue()


def make_docx(paragraphs):
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def make_image(fmt="PNG", size=(40, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


def default_reply(source):
    return json.dumps({
        "original": f"Original {source}",
        "translated": f"# {source}\n\nBody of {source}.",
    })


class FakeClient:
    """Stands in for GeminiClient; records every call it receives."""

    def __init__(self, replies=None, fail_sources=(), delays=None):
        self.replies = replies or {}
        self.fail_sources = set(fail_sources)
        self.delays = delays or {}
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def translate_unit(self, unit, quality="fast"):
        self.calls.append((unit.source_label, quality, unit.payload_kind))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(unit.source_label, 0))
            if unit.source_label in self.fail_sources:
                raise RemoteCallFailure(f"HTTP 500 for {unit.source_label}")
            return self.replies.get(unit.source_label, default_reply(unit.source_label))
        finally:
            self.in_flight -= 1

    async def generate_image(self, prompt, aspect_ratio="1:1"):
        self.calls.append(("generate_image", prompt, aspect_ratio))
        return GeneratedImage(mime_type="image/png", data=b"\x89PNG fake")

    async def analyze_media(self, data, mime_type, prompt):
        self.calls.append(("analyze_media", mime_type, prompt))
        return "A red rectangle."

    async def chat(self, message, history=()):
        self.calls.append(("chat", message, len(history)))
        return ChatReply(
            text="Lahore is in Punjab.",
            sources=(GroundingSource(uri="https://example.org/lahore", title="Lahore"),),
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def config(tmp_path):
    return Config(
        gemini_api_key="test-key",
        upload_dir=str(tmp_path / "uploads"),
        output_dir=str(tmp_path / "outputs"),
        max_retries=2,
    )


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def pdf_upload():
    return UploadedFile("book.pdf", make_pdf(["First page", "Second page", "Third page"]), "application/pdf")


@pytest.fixture
def docx_upload():
    return UploadedFile("notes.docx", make_docx(["Chapter one", "", "It was a dark night."]))


@pytest.fixture
def image_upload():
    return UploadedFile("cover.png", make_image("PNG"), "image/png")
