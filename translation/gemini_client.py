"""Async client for the Gemini generateContent REST API."""
import base64
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config import Config
from errors import ConfigurationError, MalformedResponse, NoImageGenerated, RemoteCallFailure
from models import (
    ChatMessage,
    ChatReply,
    GeneratedImage,
    GroundingSource,
    PayloadKind,
    WorkUnit,
)

logger = logging.getLogger(__name__)

ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "9:16", "16:9", "21:9")

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}

CHAT_FALLBACK_TEXT = "I couldn't process that."


def build_translation_prompt(source_language: str, target_language: str) -> str:
    """Instruction sent alongside every page, image or text payload."""
    return f"""ACT AS AN ADVANCED OCR & LAYOUT-AWARE TRANSLATION ENGINE.
1. Precisely extract all text from this document content.
2. Translate the text into high-quality {target_language}.
3. MANDATORY: You MUST preserve the document structure and formatting using Markdown syntax:
   - Use '#' for main titles/headings.
   - Use '##' for sub-headings.
   - Use '*' or '-' for bullet points.
   - Use '1.', '2.', etc., for numbered lists.
   - Ensure separate paragraphs are separated by double newlines (\\n\\n).
   - If a line is a standalone header in the original, keep it as a header in {target_language}.
4. Return a JSON object with 'original' ({source_language}) and 'translated' ({target_language} Markdown)."""


TRANSLATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "original": {"type": "STRING"},
        "translated": {"type": "STRING"},
    },
    "required": ["original", "translated"],
}


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return False


def _candidate_parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return []
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return []
    parts = content.get("parts")
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]


def _response_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate, skipping thoughts."""
    return "".join(
        part["text"]
        for part in _candidate_parts(data)
        if isinstance(part.get("text"), str) and not part.get("thought")
    )


def _inline_part(data: bytes, mime_type: str) -> Dict[str, Any]:
    return {
        "inlineData": {
            "mimeType": mime_type,
            "data": base64.b64encode(data).decode("ascii"),
        }
    }


class GeminiClient:
    """Thin async wrapper around the remote generative model."""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait=None
    ):
        if not config.gemini_api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set. Export it (or API_KEY) before starting."
            )
        self.config = config
        self.retry_wait = retry_wait or wait_exponential(multiplier=2, min=4, max=60)
        self.client = httpx.AsyncClient(
            base_url=config.gemini_base_url,
            headers={"x-goog-api-key": config.gemini_api_key},
            timeout=config.request_timeout,
            transport=transport,
        )

    async def _generate(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST a generateContent request, retrying transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.max_retries)),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self.client.post(
                        f"/models/{model}:generateContent", json=body
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:300]
            raise RemoteCallFailure(
                f"{model} returned HTTP {e.response.status_code}: {detail}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteCallFailure(f"Request to {model} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"{model} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"{model} returned an unexpected body")
        return data

    async def translate_unit(self, unit: WorkUnit, quality: str = "fast") -> str:
        """
        Send one work unit for OCR + translation.

        Returns:
            The raw JSON text produced by the model; see
            ``parse_translation_response`` for mapping it to a record.
        """
        prompt = build_translation_prompt(
            self.config.source_language, self.config.target_language
        )
        if unit.payload_kind == PayloadKind.RASTER_IMAGE:
            parts = [_inline_part(unit.payload, unit.mime_type), {"text": prompt}]
        else:
            parts = [{"text": prompt}, {"text": unit.payload}]

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": TRANSLATION_SCHEMA,
            },
        }
        data = await self._generate(self.config.model_for(quality), body)
        return _response_text(data)

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> GeneratedImage:
        """Generate an image from a text prompt."""
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(
                f"Unsupported aspect ratio {aspect_ratio}. Allowed: {', '.join(ASPECT_RATIOS)}"
            )
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio, "imageSize": "1K"},
            },
        }
        data = await self._generate(self.config.image_model, body)

        for part in _candidate_parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and isinstance(inline.get("data"), str):
                return GeneratedImage(
                    mime_type=inline.get("mimeType") or inline.get("mime_type") or "image/png",
                    data=base64.b64decode(inline["data"]),
                )
        raise NoImageGenerated("No image data received")

    async def analyze_media(self, data: bytes, mime_type: str, prompt: str) -> str:
        """Describe an image or a short video clip."""
        body = {
            "contents": [{
                "role": "user",
                "parts": [_inline_part(data, mime_type), {"text": prompt}],
            }],
        }
        response = await self._generate(self.config.analysis_model, body)
        return _response_text(response)

    async def chat(self, message: str, history: Sequence[ChatMessage] = ()) -> ChatReply:
        """Web-grounded chat turn."""
        contents = [
            {"role": turn.role, "parts": [{"text": turn.text}]}
            for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": message}]})
        body = {
            "contents": contents,
            "tools": [{"google_search": {}}],
        }
        data = await self._generate(self.config.chat_model, body)

        sources = []
        candidates = data.get("candidates")
        if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
            metadata = candidates[0].get("groundingMetadata")
            chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
            for chunk in chunks if isinstance(chunks, list) else []:
                web = chunk.get("web") if isinstance(chunk, dict) else None
                if isinstance(web, dict) and web.get("uri"):
                    sources.append(GroundingSource(uri=web["uri"], title=web.get("title") or web["uri"]))

        text = _response_text(data).strip() or CHAT_FALLBACK_TEXT
        return ChatReply(text=text, sources=tuple(sources))

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
