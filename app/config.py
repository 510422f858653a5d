# app/config.py

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Statement Reconciler API"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"
    api_url: str = "http://localhost:8000"

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str

    # Anthropic (Claude) - only used for PDF statements without a readable layout
    anthropic_api_key: str | None = None
    enable_ai_pdf_extraction: bool = True

    # Upload limits
    max_upload_mb: int = 10
    default_currency: str = "NGN"

    # Duplicate detection
    duplicate_window_size: int = 500
    detect_in_batch_duplicates: bool = True

    # Invoice matching config
    invoice_match_threshold: float = 0.6
    invoice_candidate_min_score: int = 40
    invoice_search_days_before: int = 60
    invoice_search_days_after: int = 7

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
