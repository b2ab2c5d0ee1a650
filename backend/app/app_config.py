"""
Runtime configuration for the Center App Store backend.

Values come from environment variables, falling back to ``backend/.env``.
Nothing here raises on missing values: absent credentials are reported by
:meth:`Settings.missing_cloudinary` and the health check.
"""

import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = os.path.join(os.path.dirname(__file__), "..", ".env")


class Settings(BaseSettings):
    # Server
    port: int = 5000
    frontend_url: str = "http://localhost:5173"
    log_level: str = "INFO"

    # Storage
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "center_app_store"

    # Cloudinary
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def missing_cloudinary(self) -> List[str]:
        """Names of the Cloudinary variables that are not set."""
        values = {
            "CLOUDINARY_CLOUD_NAME": self.cloudinary_cloud_name,
            "CLOUDINARY_API_KEY": self.cloudinary_api_key,
            "CLOUDINARY_API_SECRET": self.cloudinary_api_secret,
        }
        return [name for name, value in values.items() if not value]


def load_settings(env_file: Optional[str] = ENV_FILE) -> Settings:
    """Build settings from the environment; ``env_file=None`` skips the .env file."""
    return Settings(_env_file=env_file)
