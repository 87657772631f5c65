"""
Application Settings
===================

Renderer defaults and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

import sys
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wkimage.models.schemas import ProcessPriority


def default_executable_name() -> str:
    """Platform-specific wkhtmltoimage file name."""
    return "wkhtmltoimage.exe" if sys.platform == "win32" else "wkhtmltoimage"


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="wkimage", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Server Configuration
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Renderer Configuration
    tool_path: Path = Field(
        default_factory=Path.cwd, description="Directory where wkhtmltoimage is located"
    )
    executable_name: str = Field(
        default_factory=default_executable_name, description="wkhtmltoimage executable file name"
    )
    zoom: float = Field(default=1.0, gt=0, description="Default zoom factor")
    width: int = Field(default=0, ge=0, description="Default minimum width (0 = auto)")
    height: int = Field(default=0, ge=0, description="Default minimum height (0 = auto)")
    custom_args: str = Field(default="", description="Extra raw wkhtmltoimage arguments")
    process_priority: ProcessPriority = Field(
        default=ProcessPriority.NORMAL, description="wkhtmltoimage process priority"
    )
    execution_timeout: Optional[float] = Field(
        default=None, gt=0, description="Execution timeout in seconds (None = no limit)"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_path: Optional[Path] = Field(default=None, description="Directory for rotating log files")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="WKIMAGE_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
