"""
Configuration settings for the Automation API.

All settings can be overridden via environment variables.
"""

from typing import Any, Dict, List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Environment Configuration
    ENVIRONMENT: str = Field(default="development", description="Current environment")

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=3001, description="API port")
    ENABLE_DOCS: bool = Field(default=True, description="Enable OpenAPI docs")
    ALLOWED_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:8080",
            "http://localhost:8081",
            "http://localhost:8082",
        ],
        description="CORS allowed origins"
    )

    # Persistence
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./database/test-results.db",
        description="SQLAlchemy async database URL"
    )

    # Artifact Storage
    ARTIFACTS_PATH: str = Field(default="./artifacts", description="Screenshots and reports root")
    AGENT_REPORT_DIRS: List[str] = Field(
        default=["./agent_run/report"],
        description="Directories holding AI agent reports (first one is written to)"
    )

    # Report branding
    REPORT_BRAND_NAME: str = Field(default="DOBB.ai", description="Brand shown in agent reports")
    REPORT_BRAND_URL: str = Field(default="https://dobb.ai", description="Brand link target")
    AGENT_VENDOR_NAME: str = Field(default="Page Agent", description="Vendor label replaced by the brand")

    # Browser defaults (overridable per request)
    BROWSER_HEADLESS: bool = Field(default=True, description="Launch browsers headless")
    BROWSER_VIEWPORT_WIDTH: int = Field(default=1280, description="Viewport width")
    BROWSER_VIEWPORT_HEIGHT: int = Field(default=720, description="Viewport height")
    BROWSER_TIMEOUT_MS: int = Field(default=30000, description="Default action timeout")
    BROWSER_SLOW_MO_MS: int = Field(default=100, description="Delay between browser operations")
    BROWSER_USER_AGENT: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="User agent presented by automated browsers"
    )
    NAVIGATION_TIMEOUT_MS: int = Field(default=30000, description="Direct navigation timeout")

    # Admission control (0 = unlimited)
    MAX_CONCURRENT_EXECUTIONS: int = Field(default=0, description="Max concurrent automation runs")

    # AI agent
    AI_PROVIDER: str = Field(default="", description="openai, ollama or mock (empty = auto)")
    AI_MODEL_NAME: Optional[str] = Field(default=None, description="Model name for the provider")
    OPENAI_API_KEY: Optional[str] = Field(default=None, description="OpenAI API key")
    OPENAI_API_BASE: Optional[str] = Field(default=None, description="OpenAI-compatible base URL")
    OLLAMA_BASE_URL: str = Field(default="http://localhost:11434", description="Ollama server URL")
    AI_TEMPERATURE: float = Field(default=0.2, description="Sampling temperature")
    AI_TIMEOUT: int = Field(default=60, description="Model request timeout in seconds")
    AGENT_MAX_ITERATIONS: int = Field(default=8, description="Plan/act rounds per instruction")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: str = Field(default="json", description="Log format: json or text")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()


SUPPORTED_AI_PROVIDERS = ["openai", "ollama", "mock"]

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "ollama": "llama3",
    "mock": "mock",
}


def resolve_ai_provider() -> str:
    """Pick the AI provider, defaulting to the mock outside production."""
    if settings.AI_PROVIDER:
        return settings.AI_PROVIDER.lower()
    if settings.OPENAI_API_KEY:
        return "openai"
    return "openai" if settings.is_production else "mock"


def get_ai_config() -> Dict[str, Any]:
    """Build the provider configuration dict consumed by the provider factory."""
    provider = resolve_ai_provider()
    return {
        "enabled": True,
        "provider": provider,
        "model_name": settings.AI_MODEL_NAME or DEFAULT_MODELS.get(provider, "mock"),
        "api_key": settings.OPENAI_API_KEY,
        "base_url": settings.OPENAI_API_BASE if provider == "openai" else settings.OLLAMA_BASE_URL,
        "temperature": settings.AI_TEMPERATURE,
        "timeout": settings.AI_TIMEOUT,
    }


# Validation
def validate_settings():
    """Validate critical settings on startup."""
    errors = []

    provider = resolve_ai_provider()
    if provider not in SUPPORTED_AI_PROVIDERS:
        errors.append(
            f"AI_PROVIDER: unknown provider '{provider}'. "
            f"Use one of {SUPPORTED_AI_PROVIDERS}."
        )

    if settings.is_production and provider == "openai" and not settings.OPENAI_API_KEY:
        errors.append(
            "AI_PROVIDER: OpenAI selected in production but OPENAI_API_KEY is not set."
        )

    if errors:
        raise ValueError("Configuration errors: " + "; ".join(errors))


# Secret patterns for redaction
SECRET_PATTERNS = [
    r"password",
    r"secret",
    r"token",
    r"api[_-]?key",
    r"auth",
    r"credential",
    r"bearer",
    r"jwt",
]
