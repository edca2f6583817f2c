from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # Database settings
    database_url: str = "sqlite:///./couple_match.db"
    db_timeout_seconds: int = 10  # Deadline for a single store call

    # Pagination for match request listings
    default_page_size: int = 10
    max_page_size: int = 100

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings():
    return Settings()
