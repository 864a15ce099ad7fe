from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PROJECT_NAME: str = "SpecMatch API"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─── LLM ─────────────────────────────────────────────────────────────
    OPENAI_API_KEY: str | None = None
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_MAX_TOKENS: int = 4096
    LLM_REQUEST_TIMEOUT_SECONDS: float = 60.0

    # ─── Key-Value Store ─────────────────────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    KV_BACKEND: str = "redis"  # "redis" or "memory" (single process only)

    # ─── Analysis Pipeline ───────────────────────────────────────────────
    # Bump ANALYSIS_VERSION whenever merge/metric logic changes the shape or
    # values of a Result; every cached artifact under the old tag is ignored.
    ANALYSIS_VERSION: str = "v3"
    ANALYSIS_CHUNK_SIZE: int = 10
    ANALYSIS_CACHE_TTL_SECONDS: int = 60 * 60 * 24
    STAGE_TIMEOUT_SECONDS: float = 50.0

    # ─── Search ──────────────────────────────────────────────────────────
    MAX_SYNONYMS: int = 10
    SYNONYM_CACHE_MAX_SIZE: int = 1024
    SYNONYM_CACHE_TTL_SECONDS: int = 3600

    # ─── API ─────────────────────────────────────────────────────────────
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "60/minute"
    MAX_UPLOAD_SIZE_MB: int = 20

    # ⚠ These defaults are for local development ONLY.
    # In production, override CORS_ORIGINS via environment variable.
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"


settings = Settings()
