"""Data models for the translation pipeline."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


class PayloadKind(str, Enum):
    """What a work unit carries to the remote model."""
    RASTER_IMAGE = "raster_image"
    RAW_TEXT = "raw_text"


class FileKind(str, Enum):
    """Detected kind of an uploaded file."""
    PAGED_DOCUMENT = "paged_document"   # PDF
    TEXT_CONTAINER = "text_container"   # DOCX
    RASTER_IMAGE = "raster_image"       # PNG, JPEG, ...
    UNSUPPORTED = "unsupported"


class BlockKind(str, Enum):
    """Structural kind of a normalized document block."""
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    LIST = "list"
    PARAGRAPH = "paragraph"


@dataclass
class UploadedFile:
    """One uploaded file held in memory."""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class WorkUnit:
    """One atomic chunk of source content awaiting translation."""
    index: int                   # Position in upload order, used to re-sort records
    source_label: str            # "<filename>" or "<filename> (P<page>)"
    payload_kind: PayloadKind
    payload: Union[bytes, str]   # JPEG/PNG bytes for images, plain text for RAW_TEXT
    mime_type: str = "text/plain"


@dataclass(frozen=True)
class TranslationRecord:
    """The stored result of translating one work unit."""
    source: str
    original_text: str
    translated_text: str         # Markdown; never empty
    unit_index: int = 0


@dataclass(frozen=True)
class DocumentBlock:
    """One structurally classified unit of translated Markdown."""
    kind: BlockKind
    text: str = ""                          # Heading and paragraph text
    items: Tuple[str, ...] = ()             # List items, in order
    source: str = ""                        # Record the block came from
    section: int = 0                        # Position of that record in the run

    @classmethod
    def heading1(cls, text: str, source: str = "") -> "DocumentBlock":
        return cls(BlockKind.HEADING1, text=text, source=source)

    @classmethod
    def heading2(cls, text: str, source: str = "") -> "DocumentBlock":
        return cls(BlockKind.HEADING2, text=text, source=source)

    @classmethod
    def list_block(cls, items, source: str = "") -> "DocumentBlock":
        return cls(BlockKind.LIST, items=tuple(items), source=source)

    @classmethod
    def paragraph(cls, text: str, source: str = "") -> "DocumentBlock":
        return cls(BlockKind.PARAGRAPH, text=text, source=source)


@dataclass(frozen=True)
class SessionProgress:
    """Progress derived from a session after every unit completion."""
    completed_units: int
    total_units: int
    percent: int
    status_message: str


@dataclass(frozen=True)
class GroundingSource:
    """A web citation attached to a grounded chat answer."""
    uri: str
    title: str


@dataclass
class ChatMessage:
    """One turn of a chat conversation."""
    role: str                    # "user" | "model"
    text: str
    sources: List[GroundingSource] = field(default_factory=list)


@dataclass(frozen=True)
class ChatReply:
    """Reply from the grounded chat call."""
    text: str
    sources: Tuple[GroundingSource, ...] = ()


@dataclass(frozen=True)
class GeneratedImage:
    """Image returned by the image generation call."""
    mime_type: str
    data: bytes
