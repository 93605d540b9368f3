from pydantic_settings import BaseSettings

MIB = 1024 * 1024


class Settings(BaseSettings):
    # Admission gate (requests per window, per client identity)
    analyze_rate_limit: int = 10
    preview_rate_limit: int = 15
    proxy_rate_limit: int = 10
    screenshot_rate_limit: int = 5
    rate_limit_window_seconds: int = 60
    rate_limit_max_identities: int = 500

    # Timeouts (seconds)
    body_timeout_seconds: float = 5.0
    analysis_timeout_seconds: float = 25.0
    fetch_timeout_seconds: float = 30.0

    # Payload caps
    relay_max_bytes: int = 10 * MIB
    preview_max_bytes: int = 5 * MIB
    max_url_length: int = 2000

    # Outbound fetching
    relay_base_url: str = "http://127.0.0.1:8000"  # where this service's /api/proxy is reachable
    fetch_user_agent: str = "SafeSpace Analyzer (https://safespace.krinc.in)"
    analyze_probe_availability: bool = False

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
