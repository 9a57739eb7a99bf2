"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing the clock depends on (baseline cadence, burst cadence, burst window,
cache validity) and every upstream coordinate (base URL, endpoint paths, bearer token)
is declared once here. Values come from the environment or a `.env` file, so an
operator can retune the cadence without touching the engine.
"""
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    HOST: str = "127.0.0.1"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Upstream discussion API
    API_BASE_URL: str = "http://localhost:5000"
    API_BEARER_TOKEN: str = ""
    SEATS_ENDPOINT: str = "/discussion/seats"
    SPEAKERS_ENDPOINT: str = "/discussion/speakers"
    REQUESTS_ENDPOINT: str = "/discussion/requests"
    SEAT_UPDATE_ENDPOINT: str = "/discussion/seat"
    REQUEST_TIMEOUT_S: float = Field(5.0, gt=0)

    # Responsive clock
    BASELINE_INTERVAL_MS: int = Field(1000, gt=0)
    BURST_INTERVAL_MS: int = Field(100, gt=0)
    BURST_DURATION_MS: int = Field(5000, gt=0)
    CACHE_VALID_MS: int = Field(150, gt=0)

    # Facade long polling
    LONG_POLL_TIMEOUT_S: float = Field(30.0, gt=0)

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
