"""Environment-based configuration for the extraction wizard service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Wizard service settings, loaded from environment variables."""

    # Server
    PORT: int = 8092
    LOG_LEVEL: str = "INFO"

    # Extraction service credential (empty = not configured, checked per extraction)
    API_KEY: str = ""

    # Extraction service
    GEMINI_MODEL: str = "gemini-3-pro-preview"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_THINKING_BUDGET: int = 2048

    # Single attempt, so the read timeout has to cover the whole generation
    GEMINI_TIMEOUT_SECONDS: int = 300
    GEMINI_CONNECT_TIMEOUT: int = 30

    # Inline payload ceiling of the service
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024

    # Sessions untouched for this long are dropped (closed tabs never DELETE)
    SESSION_TTL_SECONDS: int = 3600

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
