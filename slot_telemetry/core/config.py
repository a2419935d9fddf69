# Pydantic settings

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    """Application settings"""

    # App
    app_name: str = "Slot Telemetry API"
    debug: bool = False

    # Persistence
    storage_backend: Literal["file", "redis"] = "file"
    data_file: str = "data/analytics.json"

    # Redis (optional, used for state storage and rate limiting when set)
    redis_url: str | None = None
    redis_state_key: str = "telemetry:state"

    # Retention caps per event kind
    max_visits: int = 10000
    max_spins: int = 50000
    max_free_spins: int = 5000
    max_big_wins: int = 5000

    # Request guards
    max_body_bytes: int = 10 * 1024
    rate_limit_requests: int = 10
    rate_limit_period: int = 1  # seconds
    rate_limit_max_clients: int = 10000  # in-memory windows tracked at once

    allowed_origins: list[str] = [
        "https://greaseburger.fun",
        "https://www.greaseburger.fun",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    blocked_user_agents: list[str] = [
        "sqlmap", "nikto", "nmap", "masscan", "zgrab",
        "censys", "shodan", "nessus", "openvas", "nuclei",
        "dirbuster", "gobuster", "ffuf", "wfuzz", "burp",
        "acunetix", "netsparker", "appscan", "webinspect", "arachni",
    ]

    model_config = SettingsConfigDict(
        # Use .env.local if it exists (for local dev), otherwise .env (for Docker)
        env_file=".env.local" if os.path.exists(".env.local") else ".env",
        case_sensitive=False
    )


settings = Settings()
