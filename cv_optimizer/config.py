import os
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseSettings):
    gemini_api_key: str = ""
    # Tried in order; later entries are only used when a model is not found
    gemini_models: list[str] = ["gemini-2.0-flash-exp", "gemini-1.5-flash"]
    gemini_temperature: float = 0.7
    gemini_max_output_tokens: int = 4096

    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0  # seconds, doubled per attempt

    max_upload_size_mb: int = 10
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
        "http://localhost:3000",
    ]
    debug: bool = False
    log_level: str = "INFO"

    # Persistence and trial limits
    database_path: str = "data/cv_optimizer.db"
    persistence_enabled: bool = True
    free_trial_limit: int = 3
    template_name: str = "modern"
    optimize_rate_limit: str = "10/minute"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "protected_namespaces": ("settings_",)}


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
