# sitecheck/settings.py
import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SEO CheckSite/1.0)"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """
    Runtime configuration for the SiteCheck audit pipeline.
    Loaded from environment variables and an optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── APP IDENTITY ─────────────────────────────────────────────────────────
    BRAND_NAME: str = "SEO CheckSite"
    PUBLIC_URL: str = Field(
        default="http://localhost:8000",
        description="Base URL used for report links in emails",
    )
    USER_AGENT: str = DEFAULT_USER_AGENT
    BROWSER_USER_AGENT: str = BROWSER_USER_AGENT
    LOG_LEVEL: str = "INFO"

    # ── DATABASE ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./sitecheck.db"

    # ── TIMEOUTS (seconds) ───────────────────────────────────────────────────
    FETCH_TIMEOUT: float = 15.0
    CRAWL_FILE_TIMEOUT: float = 5.0
    LINK_CHECK_TIMEOUT: float = 3.0
    LINK_SAMPLE_SIZE: int = 5
    COMPETITOR_TIMEOUT: float = 10.0
    LLM_TIMEOUT: float = Field(default=150.0, gt=0, le=150.0)
    EMAIL_TIMEOUT: float = 30.0

    # ── AI (Gemini for narrative reports) ────────────────────────────────────
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    LLM_TEMPERATURE: float = 0.5
    REPORT_MODE: Literal["llm", "simple"] = "llm"

    # ── EMAIL ────────────────────────────────────────────────────────────────
    EMAIL_PROVIDER: Literal["resend", "smtp"] = "resend"
    EMAIL_USE_FALLBACK: bool = True
    EMAIL_FROM: str = "reports@seochecksite.net"
    EMAIL_FROM_NAME: str = "SEO CheckSite"
    EMAIL_DISABLE_CLICK_TRACKING: bool = True

    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com"
    RESEND_DOMAIN: Optional[str] = None

    SMTP_HOST: str = "smtp.zoho.com"
    SMTP_PORT: int = 465
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None

    # ── FAILURE NOTICES ──────────────────────────────────────────────────────
    FAILURE_NOTICE_LIMIT: int = 3
    FAILURE_NOTICE_WINDOW_SECONDS: float = 3600.0

    # ── LOCAL BUSINESS HEURISTICS ────────────────────────────────────────────
    LOCAL_ADDRESS_WINDOW: int = 100
    LOCAL_PENALTY_NO_ADDRESS: int = 25
    LOCAL_PENALTY_PARTIAL_ADDRESS: int = 10
    LOCAL_PENALTY_NO_CITY_STATE: int = 15
    LOCAL_PENALTY_NO_PHONE: int = 25
    LOCAL_PENALTY_NO_SCHEMA: int = 20
    LOCAL_PENALTY_NO_MAP: int = 10

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def normalize_postgres_url(cls, v: str) -> str:
        """
        Converts old-style postgres URLs from 'postgres://' to 'postgresql://'.
        """
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @property
    def llm_enabled(self) -> bool:
        return self.REPORT_MODE == "llm" and bool(self.GEMINI_API_KEY)


# Cached singleton to avoid repeated instantiation
@lru_cache()
def get_settings() -> Settings:
    return Settings()
