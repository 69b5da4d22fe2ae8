"""Main translation pipeline orchestrator."""
import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from config import Config
from errors import TranslatorError
from ingestion import plan_units
from models import TranslationRecord, UploadedFile
from reconstruction import build_docx, build_pdf, normalize_records, render_html
from session import (
    TranslationSession,
    new_session,
    run_cancelled,
    run_failed,
    run_finished,
    unit_completed,
    unit_started,
    units_discovered,
)
from translation import GeminiClient, TranslationDispatcher

logger = logging.getLogger(__name__)

SessionCallback = Callable[[TranslationSession], None]


def load_uploads(paths: Sequence[str]) -> List[UploadedFile]:
    """Read files from disk into memory."""
    uploads = []
    for path in paths:
        if not os.path.exists(path):
            raise FileNotFoundError(f"File not found: {path}")
        content_type, _ = mimetypes.guess_type(path)
        with open(path, "rb") as f:
            uploads.append(UploadedFile(Path(path).name, f.read(), content_type))
    return uploads


class TranslationPipeline:
    """Orchestrates upload -> work units -> remote translation -> manuscript."""

    def __init__(self, config: Optional[Config] = None, client=None):
        self.config = config or Config.from_env()
        self.config.ensure_directories()
        self.client = client
        self._owns_client = client is None

    def _get_client(self):
        if self.client is None:
            self.client = GeminiClient(self.config)
        return self.client

    async def run(
        self,
        files: Sequence[UploadedFile],
        quality: str = "fast",
        session: Optional[TranslationSession] = None,
        on_update: Optional[SessionCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        single_file: bool = False
    ) -> TranslationSession:
        """
        Translate a batch of uploads.

        Every state change is published through ``on_update``. The returned
        session is always terminal (finished, failed or cancelled); errors
        are reported on the session rather than raised.
        """
        current = session or new_session(quality)

        def publish(updated: TranslationSession) -> None:
            nonlocal current
            current = updated
            if on_update:
                on_update(updated)

        try:
            # Opening PDFs and counting pages blocks; keep it off the event loop
            plan = await asyncio.to_thread(plan_units, files, self.config, single_file=single_file)
        except TranslatorError as e:
            logger.warning("Upload rejected: %s", e)
            publish(run_failed(current, str(e)))
            return current
        except Exception as e:
            logger.exception("Could not plan the upload")
            publish(run_failed(current, f"Unexpected error: {e}"))
            return current

        with plan:
            publish(units_discovered(current, plan.total_units, tuple(plan.warnings)))

            if plan.total_units == 0:
                reasons = "; ".join(w.message for w in plan.warnings) or "no files were uploaded"
                publish(run_failed(current, f"No translatable content found: {reasons}"))
                return current

            try:
                dispatcher = TranslationDispatcher(self.config, self._get_client())
                result = await dispatcher.dispatch(
                    plan,
                    quality=quality,
                    on_unit_started=lambda source: publish(unit_started(current, source)),
                    on_unit_done=lambda source, record, warning: publish(
                        unit_completed(current, source, record, warning)
                    ),
                    cancel_event=cancel_event,
                )
            except TranslatorError as e:
                logger.error("Translation run failed: %s", e)
                publish(run_failed(current, str(e)))
                return current
            except Exception as e:
                logger.exception("Translation run crashed")
                publish(run_failed(current, f"Unexpected error: {e}"))
                return current

        if result.cancelled:
            publish(run_cancelled(current))
        else:
            publish(run_finished(current))
        return current

    def export_docx(
        self,
        records: Sequence[TranslationRecord],
        output_path: Optional[str] = None
    ) -> bytes:
        """Flowed right-to-left Word manuscript."""
        return build_docx(
            normalize_records(records),
            title=f"Unified {self.config.target_language} Manuscript",
            output_path=output_path,
        )

    def export_pdf(
        self,
        records: Sequence[TranslationRecord],
        output_path: Optional[str] = None
    ) -> bytes:
        """Paginated A4 manuscript."""
        return build_pdf(
            normalize_records(records),
            title=f"{self.config.target_language} Book Manuscript",
            output_path=output_path,
            font_path=self.config.pdf_font_path,
        )

    def preview_html(self, records: Sequence[TranslationRecord]) -> str:
        return render_html(normalize_records(records), show_sources=True)

    async def close(self):
        """Clean up resources."""
        if self.client is not None and self._owns_client:
            await self.client.close()


# CLI entry point
async def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for direct pipeline execution."""
    parser = argparse.ArgumentParser(description="Translate documents into a manuscript.")
    parser.add_argument("files", nargs="+", help="PDF, DOCX or image files")
    parser.add_argument("--quality", choices=["fast", "precise"], default="fast")
    parser.add_argument("--output-dir", help="Directory for the exported manuscripts")
    args = parser.parse_args(argv)

    config = Config.from_env()
    if args.output_dir:
        config.output_dir = args.output_dir
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    pipeline = TranslationPipeline(config)

    def progress_callback(session: TranslationSession):
        print(f"Progress: {session.percent}% ({session.completed_units}/{session.total_units}) - {session.status_message}")

    try:
        files = load_uploads(args.files)
        session = await pipeline.run(files, quality=args.quality, on_update=progress_callback)
    finally:
        await pipeline.close()

    for warning in session.warnings:
        print(f"Warning: {warning.source}: {warning.message}", file=sys.stderr)

    if not session.records:
        print(f"Error: {session.error or session.status_message}", file=sys.stderr)
        return 1

    docx_path = os.path.join(config.output_dir, config.export_filename("docx"))
    pdf_path = os.path.join(config.output_dir, config.export_filename("pdf"))
    pipeline.export_docx(session.records, docx_path)
    pipeline.export_pdf(session.records, pdf_path)
    print(f"Translation complete: {docx_path}, {pdf_path}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
