from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "dev"
    api_base_url: str = "http://localhost:5000"
    access_token: str | None = None
    request_timeout_seconds: float = 10.0
    items_per_page: int = 20
    promoted_limit: int = 10
    recommended_limit: int = 20
    otel_enabled: bool = True
    otel_service_name: str = "opportunity-feed"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="OPPFEED_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
