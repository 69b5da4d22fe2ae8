"""Configuration management for the manuscript translator."""
import os
from dataclasses import dataclass
from typing import Optional


GIB = 1024 * 1024 * 1024
MIB = 1024 * 1024


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Remote model API
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    fast_model: str = "gemini-3-flash-preview"
    precise_model: str = "gemini-3-pro-preview"
    image_model: str = "gemini-3-pro-image-preview"
    analysis_model: str = "gemini-3-pro-preview"
    chat_model: str = "gemini-3-pro-preview"
    request_timeout: float = 300.0
    max_retries: int = 3

    # Languages
    source_language: str = "English"
    target_language: str = "Urdu"

    # Upload limits
    max_total_bytes: int = 2 * GIB
    max_single_file_bytes: int = 200 * MIB

    # Page rasterization
    render_scale: float = 1.5
    jpeg_quality: int = 80

    # Dispatch settings
    translation_concurrency: int = 1

    # Export settings
    pdf_font_path: Optional[str] = None

    # File paths
    upload_dir: str = "./uploads"
    output_dir: str = "./outputs"

    log_level: str = "INFO"

    def __post_init__(self):
        # At most four remote calls in flight
        self.translation_concurrency = max(1, min(4, int(self.translation_concurrency)))

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", "")),
            gemini_base_url=os.getenv(
                "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
            ),
            fast_model=os.getenv("FAST_MODEL", "gemini-3-flash-preview"),
            precise_model=os.getenv("PRECISE_MODEL", "gemini-3-pro-preview"),
            image_model=os.getenv("IMAGE_MODEL", "gemini-3-pro-image-preview"),
            analysis_model=os.getenv("ANALYSIS_MODEL", "gemini-3-pro-preview"),
            chat_model=os.getenv("CHAT_MODEL", "gemini-3-pro-preview"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "300")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            source_language=os.getenv("SOURCE_LANGUAGE", "English"),
            target_language=os.getenv("TARGET_LANGUAGE", "Urdu"),
            max_total_bytes=int(os.getenv("MAX_TOTAL_BYTES", str(2 * GIB))),
            max_single_file_bytes=int(os.getenv("MAX_SINGLE_FILE_BYTES", str(200 * MIB))),
            render_scale=float(os.getenv("RENDER_SCALE", "1.5")),
            jpeg_quality=int(os.getenv("JPEG_QUALITY", "80")),
            translation_concurrency=int(os.getenv("TRANSLATION_CONCURRENCY", "1")),
            pdf_font_path=os.getenv("PDF_FONT_PATH") or None,
            upload_dir=os.getenv("UPLOAD_DIR", "./uploads"),
            output_dir=os.getenv("OUTPUT_DIR", "./outputs"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def model_for(self, quality: str) -> str:
        """Map a quality tier ("fast" or "precise") to a backend model id."""
        if quality == "precise":
            return self.precise_model
        if quality == "fast":
            return self.fast_model
        raise ValueError(f"Unknown quality tier: {quality}")

    def export_filename(self, ext: str) -> str:
        """Fixed download name for an export, e.g. ``Urdu_Manuscript.pdf``."""
        return f"{self.target_language}_Manuscript.{ext}"

    def ensure_directories(self) -> None:
        """Create upload and output directories if they don't exist."""
        os.makedirs(self.upload_dir, exist_ok=True)
        os.makedirs(self.output_dir, exist_ok=True)
