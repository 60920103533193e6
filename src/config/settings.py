"""
Application Settings.

Centralizes all configuration via .env / environment variables.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # --- App ---
    env: str = "development"
    debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    load_demo_data: bool = True

    # --- Storage ---
    database_url: str = "sqlite:///supplier_verification.db"
    storage_root: str = "data/uploads"

    # --- Upload Gateway ---
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_document_mime_types: list[str] = [
        "application/pdf",
        "image/jpeg",
        "image/jpg",
        "image/png",
    ]

    # --- Flagging policy ---
    flag_threshold: float = 0.7
    stock_photo_threshold: float = 0.7
    max_capture_age_seconds: int = 600

    # --- AI Analysis ---
    analysis_backend: str = "opencv"      # "opencv" | "gemini"
    analysis_timeout_seconds: float = 15.0
    duplicate_max_distance: int = 32      # dHash bits at which duplicate score hits 0
    retail_min_shelf_rows: int = 4

    # --- LLM (Gemini) ---
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    # --- Capture client ---
    gateway_url: str = "http://localhost:8000/api"
    capture_timezone: str = "Asia/Kolkata"
    capture_jpeg_quality: int = 80
    geolocation_timeout_seconds: float = 10.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Settings singleton."""
    return Settings()
