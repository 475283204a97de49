"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Dict, Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "E-stock Support Bot"
    app_version: str = "1.0.0"
    debug: bool = True

    # Security
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 1 day

    # Storage
    local_storage_path: str = "./data"
    local_cache_path: Optional[str] = "./data_cache"  # fallback copy, None disables

    # LLM Provider settings
    llm_provider: str = "gemini"  # "gemini", "openai" or "volcengine"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set

    # Legacy key (still accepted)
    gemini_api_key: Optional[str] = None

    # Conversation limits
    max_manual_chars: int = 150_000
    max_snippet_chars: int = 2_000
    max_image_bytes: int = 1024 * 1024
    max_tool_iterations: int = 10
    logs_page_size: int = 100

    # Screen illustrations for the show_screen_image tool
    screen_images: Dict[str, str] = {
        "sales": "https://placehold.co/600x400/png?text=Sales+POS",
        "purchases": "https://placehold.co/600x400/png?text=Purchases",
        "inventory": "https://placehold.co/600x400/png?text=Inventory",
    }

    # Admin
    default_admin_password: str = "admin123"
    admin_recovery_key: str = "admin-recovery"
    min_admin_password_length: int = 4

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/estock_support.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses
    log_llm_calls: bool = True  # Log all LLM calls with token usage

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def effective_llm_api_key(self) -> Optional[str]:
        """Return the configured model API key, accepting the legacy variable."""
        return self.llm_api_key or self.gemini_api_key


settings = Settings()
