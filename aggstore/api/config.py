"""
Configuration for the aggstore HTTP app.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP app configuration loaded from environment."""

    title: str = Field(default="aggstore", description="OpenAPI title")

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, description="Bind port")

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )

    model_config = {"env_prefix": "AGGSTORE_"}
