"""
Centralised application settings loaded from environment variables.
Uses pydantic-settings so every value can be overridden via env vars or a .env file.
"""

from pydantic_settings import BaseSettings


class ConfigurationError(RuntimeError):
    """Raised at startup when a required credential is missing."""


# (field, min, max): values outside the range only produce a warning
_RECOMMENDED_RANGES = (
    ("rate_limit_max_requests", 1, None),
    ("file_limit", 1, 50),
    ("ai_max_retries", 1, 10),
)


class Settings(BaseSettings):
    """Application configuration."""

    # ── AI service (OpenAI-compatible endpoint) ─────────────
    ai_api_key: str = ""
    ai_model: str = "gemini-1.5-flash"
    ai_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    ai_max_tokens: int = 8192
    ai_temperature: float = 0.2
    ai_timeout: float = 60.0
    ai_max_retries: int = 3
    ai_retry_delay_base: float = 1.0

    # ── GitHub ──────────────────────────────────────────────
    github_token: str = ""
    github_api_base: str = "https://api.github.com"

    # ── HTTP client ─────────────────────────────────────────
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 30.0

    # ── Repository processing limits ────────────────────────
    file_limit: int = 10
    max_file_size: int = 50_000
    content_truncate: int = 2_000
    config_files_limit: int = 5
    architectural_files_limit: int = 8
    source_files_limit: int = 10
    fetch_concurrency: int = 5

    # ── Documentation & chat ────────────────────────────────
    docs_output_dir: str = "./generated-docs"
    chat_history_window: int = 10
    chat_context_chars: int = 2_000

    # ── Rate limiting / request guards ──────────────────────
    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 100
    cors_origin: str = "http://localhost:3000"
    body_limit_bytes: int = 10 * 1024 * 1024

    # ── Server ──────────────────────────────────────────────
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "info"

    model_config = {"env_prefix": "", "env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def rate_limit(self) -> str:
        """Limit string in the format understood by slowapi."""
        return f"{self.rate_limit_max_requests} per {self.rate_limit_window_seconds} seconds"

    def missing_credentials(self) -> list[str]:
        missing = []
        if not self.github_token:
            missing.append("GITHUB_TOKEN")
        if not self.ai_api_key:
            missing.append("AI_API_KEY")
        return missing

    def require_credentials(self) -> None:
        """Fail fast when the hosting-API token or AI credential is absent."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

    def range_warnings(self) -> list[str]:
        warnings = []
        for name, low, high in _RECOMMENDED_RANGES:
            value = getattr(self, name)
            if value < low or (high is not None and value > high):
                warnings.append(
                    f"{name.upper()} value {value} is outside recommended range "
                    f"[{low}-{high if high is not None else 'inf'}]"
                )
        return warnings


# Singleton used across the app
settings = Settings()
