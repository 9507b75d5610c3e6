"""
Configuration settings for FlowRunner.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "FlowRunner"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Execution
    NODE_PACING_DELAY: float = 0.0  # Seconds no-op nodes wait, cut short by pause
    EVENT_HISTORY_LIMIT: int = 500  # Terminal lines kept in memory

    # Demo workflow
    LOAD_DEMO_WORKFLOW: bool = False
    DEMO_API_URL: str = "https://jsonplaceholder.typicode.com/todos/1"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Default settings, used when create_app() is called without any
settings = Settings()
