"""
Configuration settings for FlowCanvas.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "FlowCanvas"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # History
    HISTORY_LIMIT: int = 50  # Max undo/redo steps

    # Execution
    EXECUTION_DELAY: float = 1.0  # Seconds of simulated work per node

    # Persistence
    AUTOSAVE_DELAY: float = 1.0  # Seconds to debounce autosave
    STORAGE_DIR: Optional[str] = None  # In-memory storage when unset
    STORAGE_KEY: str = "workflow_data"

    # WebSocket
    WS_POLL_INTERVAL: float = 0.25

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
