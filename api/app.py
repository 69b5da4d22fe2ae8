"""FastAPI application for the manuscript translator."""
import asyncio
import base64
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel

from config import Config
from errors import RemoteCallFailure, RunInProgress, SizeLimitExceeded, TranslatorError
from ingestion import check_size_limits, check_sizes
from models import ChatMessage, UploadedFile
from pipeline import TranslationPipeline
from session import SessionRegistry, TranslationSession, run_failed
from translation import ASPECT_RATIOS, GeminiClient

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
}

DEFAULT_IMAGE_PROMPT = "Describe this image in detail and identify key subjects."
DEFAULT_VIDEO_PROMPT = "Analyze the scene flow."


class ImageRequest(BaseModel):
    prompt: str
    aspect_ratio: str = "1:1"


class ChatTurn(BaseModel):
    role: str
    text: str


class ChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = []


def create_app(config: Optional[Config] = None, client=None) -> FastAPI:
    """
    Build the API.

    Args:
        config: Settings (loaded from the environment when omitted)
        client: Remote model client; a GeminiClient is built on first use
            when omitted
    """
    config = config or Config.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if app.state.client is not None:
            await app.state.client.close()

    app = FastAPI(title="Manuscript Translator API", version="1.0.0", lifespan=lifespan)

    # CORS middleware for Streamlit UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.client = client
    app.state.registry = SessionRegistry()

    def get_client():
        if app.state.client is None:
            try:
                app.state.client = GeminiClient(config)
            except TranslatorError as e:
                raise HTTPException(status_code=503, detail=str(e)) from e
        return app.state.client

    def get_session(job_id: str) -> TranslationSession:
        session = app.state.registry.get(job_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return session

    async def run_translation(
        session: TranslationSession,
        files: List[UploadedFile],
        cancel_event: asyncio.Event,
        single_file: bool
    ):
        """Background task to run the translation pipeline."""
        registry = app.state.registry
        # Without an injected client the pipeline builds and closes its own
        pipeline = TranslationPipeline(config, client=app.state.client)
        try:
            await pipeline.run(
                files,
                quality=session.quality,
                session=session,
                on_update=registry.update,
                cancel_event=cancel_event,
                single_file=single_file,
            )
        except Exception as e:
            logger.exception("Translation job %s crashed", session.job_id)
            registry.update(run_failed(registry.get(session.job_id), f"Unexpected error: {e}"))
            raise
        finally:
            await pipeline.close()

    @app.post("/translate")
    async def translate_files(
        background_tasks: BackgroundTasks,
        files: List[UploadFile] = File(...),
        quality: str = Form("fast"),
        single_file: bool = Form(False)
    ):
        """
        Upload documents for translation.

        Returns immediately with a job_id. Use GET /status/{job_id} to check progress.
        """
        if quality not in ("fast", "precise"):
            raise HTTPException(status_code=400, detail="quality must be 'fast' or 'precise'")

        # Reject on the declared sizes before reading any body into memory
        try:
            check_sizes(
                [(upload.filename or "upload", upload.size) for upload in files if upload.size is not None],
                config,
                single_file=single_file,
            )
        except SizeLimitExceeded as e:
            raise HTTPException(status_code=413, detail=str(e)) from e

        uploads = [
            UploadedFile(upload.filename or "upload", await upload.read(), upload.content_type)
            for upload in files
        ]

        # Reject oversized uploads before any remote call is made
        try:
            check_size_limits(uploads, config, single_file=single_file)
        except SizeLimitExceeded as e:
            raise HTTPException(status_code=413, detail=str(e)) from e

        try:
            session, cancel_event = await app.state.registry.begin(quality)
        except RunInProgress as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

        background_tasks.add_task(run_translation, session, uploads, cancel_event, single_file)

        return {
            "job_id": session.job_id,
            "message": "Translation job started",
            "status_url": f"/status/{session.job_id}",
        }

    @app.get("/status/{job_id}")
    async def get_status(job_id: str):
        """Get the status of a translation job."""
        session = get_session(job_id)
        return {
            "job_id": session.job_id,
            "status": session.state.value,
            "is_processing": session.is_processing,
            "progress": session.percent,
            "units_done": session.completed_units,
            "units_total": session.total_units,
            "message": session.status_message,
            "sections": len(session.records),
            "warnings": [
                {"source": w.source, "message": w.message} for w in session.warnings
            ],
            "error": session.error,
            "duration_seconds": session.duration_seconds,
        }

    @app.post("/cancel/{job_id}")
    async def cancel_job(job_id: str):
        """Stop a running job after the unit currently in flight."""
        session = get_session(job_id)
        if not session.is_processing:
            raise HTTPException(status_code=400, detail=f"Job is not running. Current status: {session.state.value}")
        app.state.registry.cancel(job_id)
        return {"job_id": job_id, "message": "Cancellation requested"}

    @app.get("/preview/{job_id}", response_class=HTMLResponse)
    async def preview(job_id: str):
        """Right-to-left HTML preview of the translated sections."""
        session = get_session(job_id)
        pipeline = TranslationPipeline(config, client=app.state.client)
        return pipeline.preview_html(session.records)

    @app.get("/records/{job_id}")
    async def records(job_id: str):
        """Raw original and translated text per section."""
        session = get_session(job_id)
        return [
            {
                "source": r.source,
                "original": r.original_text,
                "translated": r.translated_text,
            }
            for r in session.records
        ]

    @app.get("/download/{job_id}/{fmt}")
    async def download_file(job_id: str, fmt: str):
        """Download the translated manuscript as DOCX or PDF."""
        session = get_session(job_id)
        if fmt not in MEDIA_TYPES:
            raise HTTPException(status_code=400, detail="Format must be 'docx' or 'pdf'")
        if session.is_processing:
            raise HTTPException(
                status_code=400,
                detail=f"Job is not complete. Current status: {session.state.value}"
            )
        if not session.records:
            raise HTTPException(status_code=404, detail="No translated sections to export")

        pipeline = TranslationPipeline(config, client=app.state.client)
        if fmt == "docx":
            data = pipeline.export_docx(session.records)
        else:
            data = pipeline.export_pdf(session.records)

        filename = config.export_filename(fmt)
        return Response(
            content=data,
            media_type=MEDIA_TYPES[fmt],
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/images/generate")
    async def generate_image(request: ImageRequest):
        """Generate an image from a prompt."""
        if request.aspect_ratio not in ASPECT_RATIOS:
            raise HTTPException(
                status_code=400,
                detail=f"aspect_ratio must be one of {', '.join(ASPECT_RATIOS)}"
            )
        try:
            image = await get_client().generate_image(request.prompt, request.aspect_ratio)
        except RemoteCallFailure as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {
            "mime_type": image.mime_type,
            "data_url": f"data:{image.mime_type};base64,{base64.b64encode(image.data).decode('ascii')}",
        }

    async def _analyze(file: UploadFile, prompt: str, kind: str):
        mime_type = file.content_type or "application/octet-stream"
        if not mime_type.startswith(f"{kind}/"):
            raise HTTPException(status_code=400, detail=f"Expected a {kind} file, got {mime_type}")
        try:
            if file.size is not None:
                check_sizes([(file.filename or "", file.size)], config, single_file=True)
            data = await file.read()
            check_sizes([(file.filename or "", len(data))], config, single_file=True)
        except SizeLimitExceeded as e:
            raise HTTPException(status_code=413, detail=str(e)) from e
        try:
            text = await get_client().analyze_media(data, mime_type, prompt)
        except RemoteCallFailure as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {"analysis": text}

    @app.post("/images/analyze")
    async def analyze_image(file: UploadFile = File(...), prompt: str = Form(DEFAULT_IMAGE_PROMPT)):
        """Describe an uploaded image."""
        return await _analyze(file, prompt, "image")

    @app.post("/videos/analyze")
    async def analyze_video(file: UploadFile = File(...), prompt: str = Form(DEFAULT_VIDEO_PROMPT)):
        """Describe an uploaded video clip."""
        return await _analyze(file, prompt, "video")

    @app.post("/chat")
    async def chat(request: ChatRequest):
        """Web-grounded chat turn."""
        history = [ChatMessage(role=turn.role, text=turn.text) for turn in request.history]
        try:
            reply = await get_client().chat(request.message, history)
        except RemoteCallFailure as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {
            "text": reply.text,
            "sources": [{"uri": s.uri, "title": s.title} for s in reply.sources],
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "is_processing": app.state.registry.is_processing,
            "fast_model": config.fast_model,
            "precise_model": config.precise_model,
            "target_language": config.target_language,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
