"""Dispatch work units to the remote model and collect translation records."""
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from config import Config
from errors import FileWarning, MalformedResponse, TranslatorError
from ingestion.ingestor import IngestPlan, UnitSpec
from models import TranslationRecord, WorkUnit

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "*No translatable text was returned for this section.*"

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_translation_response(raw: Optional[str]) -> Tuple[str, str]:
    """
    Map the model's JSON reply to (original, translated).

    Never raises: a missing, malformed or empty reply degrades to a
    placeholder translation so downstream layout always gets some Markdown.
    """
    text = (raw or "").strip()
    match = FENCE_PATTERN.match(text)
    if match:
        text = match.group(1)

    try:
        data = json.loads(text) if text else {}
    except ValueError:
        logger.warning("Model returned malformed JSON: %.80s", text)
        data = {}

    if not isinstance(data, dict):
        data = {}

    original = data.get("original")
    translated = data.get("translated")
    original = original if isinstance(original, str) else ""
    translated = translated.strip() if isinstance(translated, str) else ""

    return original, translated or PLACEHOLDER_TEXT


# (source_label) when a unit is sent
UnitStartedCallback = Callable[[str], None]
# (source_label, record or None, warning or None) when a unit is done
UnitDoneCallback = Callable[[str, Optional[TranslationRecord], Optional[FileWarning]], None]


@dataclass
class DispatchResult:
    """Records in upload order, plus per-unit failures."""
    records: List[TranslationRecord] = field(default_factory=list)
    warnings: List[FileWarning] = field(default_factory=list)
    cancelled: bool = False


class TranslationDispatcher:
    """Translate planned units with bounded concurrency, skipping failed units."""

    def __init__(self, config: Config, client):
        self.config = config
        self.client = client
        self.concurrency = config.translation_concurrency

    async def translate_unit(self, unit: WorkUnit, quality: str = "fast") -> TranslationRecord:
        """Issue exactly one remote call for a unit and build its record."""
        try:
            raw = await self.client.translate_unit(unit, quality)
        except MalformedResponse as e:
            logger.warning("Unreadable reply for %s: %s", unit.source_label, e)
            raw = None
        original, translated = parse_translation_response(raw)
        if not original and isinstance(unit.payload, str):
            original = unit.payload
        return TranslationRecord(
            source=unit.source_label,
            original_text=original,
            translated_text=translated,
            unit_index=unit.index,
        )

    async def dispatch(
        self,
        plan: IngestPlan,
        quality: str = "fast",
        on_unit_started: Optional[UnitStartedCallback] = None,
        on_unit_done: Optional[UnitDoneCallback] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> DispatchResult:
        """
        Translate every unit of a plan.

        With concurrency 1 units are sent strictly one after another. With
        more workers, completion order may differ from upload order; the
        returned records are always sorted by unit index.
        """
        result = DispatchResult()
        pending = iter(plan.units)

        async def worker():
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    return
                spec = next(pending, None)
                if spec is None:
                    return
                record, warning = await self._run_one(plan, spec, quality, on_unit_started)
                if record is not None:
                    result.records.append(record)
                if warning is not None:
                    result.warnings.append(warning)
                if on_unit_done:
                    on_unit_done(spec.source_label, record, warning)

        workers = min(self.concurrency, max(1, plan.total_units))
        tasks = [asyncio.ensure_future(worker()) for _ in range(workers)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            # Stop the other workers before the caller closes the plan
            for task in tasks:
                task.cancel()
            raise

        result.records.sort(key=lambda r: r.unit_index)
        logger.info(
            "Dispatched %d units: %d translated, %d skipped%s",
            plan.total_units, len(result.records), len(result.warnings),
            " (cancelled)" if result.cancelled else ""
        )
        return result

    async def _run_one(
        self,
        plan: IngestPlan,
        spec: UnitSpec,
        quality: str,
        on_unit_started: Optional[UnitStartedCallback]
    ) -> Tuple[Optional[TranslationRecord], Optional[FileWarning]]:
        if on_unit_started:
            on_unit_started(spec.source_label)

        try:
            unit = await asyncio.to_thread(plan.load, spec)
        except Exception as e:
            # Rasterization errors come from pdfium/Pillow with no common base class
            logger.warning("Could not render %s: %s", spec.source_label, e)
            return None, FileWarning(spec.source_label, f"Could not render page: {e}")

        logger.info("Translating %s", spec.source_label)
        try:
            record = await self.translate_unit(unit, quality)
        except TranslatorError as e:
            logger.warning("Skipping %s: %s", spec.source_label, e)
            return None, FileWarning(spec.source_label, str(e))
        return record, None
