import os
from typing import Optional

from pydantic import BaseModel

class Settings(BaseModel):
    service_name: str = "a2a-agents"
    environment: str = "dev"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: Optional[int] = None           # Profile default when unset

    # Function calling loop
    max_iterations: int = 10
    model_timeout_seconds: float = 60.0
    tool_timeout_seconds: float = 30.0
    max_parallel_tools: int = 8
    model_name: Optional[str] = None      # Provider default when unset

    # Agent service
    agent_profile: str = "research"
    tool_server_url: Optional[str] = None

    # Remote agent calls
    agent_timeout_seconds: float = 30.0
    health_timeout_seconds: float = 5.0
    retry_attempts: int = 3               # Retries after the first attempt
    retry_min_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0
    retry_factor: float = 2.0
    workflow_timeout_seconds: Optional[float] = None

    research_agent_url: str = "http://localhost:3001"
    analysis_agent_url: str = "http://localhost:3002"
    writer_agent_url: str = "http://localhost:3003"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings, overriding each field from its upper-cased env var."""
        values = {
            name: os.environ[name.upper()]
            for name in cls.model_fields
            if os.environ.get(name.upper())
        }
        return cls(**values)

settings = Settings.from_env()
