from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 18093
    log_level: str = "info"

    # Record store (config records + token verification)
    pb_url: str = "http://127.0.0.1:8090"
    config_cache_ttl_ms: int = 5000

    # CORS
    allowed_origin: str = "https://hololive.com.cn"

    # Defaults for the translation config when the record store has none
    default_timeout_ms: int = 20000
    max_input_chars: int = 30000
    cache_ttl_ms: int = 30 * 60 * 1000
    ai_base_url: str = "https://www.right.codes/codex/v1"
    ai_model: str = "gpt-5.2"

    # Free MT backend
    free_backend_url: str = "https://api.mymemory.translated.net"

    # Rate limiting
    rate_limit_max: int = 30
    rate_limit_window_s: float = 60.0

    # Background sweeps (rate buckets, result cache)
    sweep_interval_s: float = 300.0

    # Limits
    max_body_bytes: int = 1024 * 1024  # 1 MB

    # Monitoring
    prometheus_enabled: bool = True

    model_config = {
        "env_prefix": "AI_TRANSLATE_",
        "env_file": ["../.env", ".env"],
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
