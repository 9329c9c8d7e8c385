"""
Runtime configuration for CivicLens
Values come from the environment (optionally a .env file)
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class Settings:
    """Explicit settings object handed to build_context()"""

    mongodb_uri: str = "mongodb://localhost:27017/"
    database_name: str = "civic-lens"
    mongodb_timeout_ms: int = 5000
    log_level: str = "INFO"
    issue_report_points: int = 10
    max_page_size: Optional[int] = None
    image_max_width: int = 800
    image_jpeg_quality: int = 85
    dashboard_workers: int = 4

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables"""
        if dotenv:
            load_dotenv()
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI", cls.mongodb_uri),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            mongodb_timeout_ms=_int_env("MONGODB_TIMEOUT_MS", cls.mongodb_timeout_ms),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            issue_report_points=_int_env("ISSUE_REPORT_POINTS", cls.issue_report_points),
            max_page_size=_int_env("MAX_PAGE_SIZE", None),
            image_max_width=_int_env("IMAGE_MAX_WIDTH", cls.image_max_width),
            image_jpeg_quality=_int_env("IMAGE_JPEG_QUALITY", cls.image_jpeg_quality),
            dashboard_workers=_int_env("DASHBOARD_WORKERS", cls.dashboard_workers),
        )

    @property
    def redacted_uri(self) -> str:
        """Connection string without credentials, safe for logs"""
        return self.mongodb_uri.split("@")[-1] if "@" in self.mongodb_uri else self.mongodb_uri
