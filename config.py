"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Output
    output_dir: str = "./raw"
    image_dir: str = "./image"
    name_map_file: Optional[str] = None  # defaults to <book raw dir>/name_map.json

    # Requests
    header_file: Optional[str] = None
    request_delay: Optional[float] = None  # seconds, site profile default if unset
    timeout: Optional[float] = None  # seconds, site profile default if unset
    retry_count: int = 3
    concurrent_requests: int = 8
    user_agent: Optional[str] = None

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "PAGECOLLECT_"
        case_sensitive = False


settings = Settings()
