from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    cache_path: Path = Path("data/geocode_cache.duckdb")
    preload_path: Optional[Path] = None

    # Provider
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    country_code: str = "ar"
    country_name: str = "Argentina"
    contact_email: Optional[str] = None
    user_agent: str = "Argentina-Map-App/1.0"
    accept_language: str = "es"
    timeout_s: float = 10.0

    # Throughput
    rate_limit_ms: int = 1200  # ~1 req/s, Nominatim usage policy
    concurrency: int = 4

    model_config = SettingsConfigDict(
        env_prefix="ADDRESS_MAPPER_",
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
