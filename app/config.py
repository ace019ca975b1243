"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true")


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "Feedback Hunter"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3; any SQLAlchemy URL works, sqlite for tests)
    database_url: str = "postgresql+psycopg://localhost:5432/hunter_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for /internal/* endpoints

    # LLM (relevance + classification oracles)
    llm_provider: str = "openai"
    llm_api_key: Optional[str] = None
    llm_model_relevance: str = "gpt-4o-mini"
    llm_model_classify: str = "gpt-4o-mini"
    llm_timeout: float = 30.0  # per HTTP attempt, capped by the item timeout
    llm_max_retries: int = 0  # SDK retries; item attempts already retry failed items

    # Stage batch sizes: small so one invocation fits the scheduler's time budget
    hunter_collect_batch_size: int = 25
    hunter_filter_batch_size: int = 15
    hunter_classify_batch_size: int = 5

    # Collect paging: the collect batch size is the page size
    hunter_collect_max_pages: int = 4  # per (scan, platform)

    # Per-item bounds
    hunter_item_timeout_seconds: float = 20.0
    hunter_item_max_attempts: int = 2

    # Job retry policy
    hunter_job_max_attempts: int = 3
    hunter_retry_backoff_seconds: int = 60  # base; doubles per attempt
    hunter_stale_job_seconds: int = 900

    # 0 = unlimited
    hunter_max_running_scans_per_project: int = 1

    # Relevance decision thresholds (score 0-100)
    hunter_relevance_include_threshold: int = 80
    hunter_relevance_review_threshold: int = 60

    # Sources
    hunter_use_static_source: bool = False
    reddit_user_agent: str = "feedback-hunter/0.1"

    # Scan-complete email (best-effort)
    hunter_notify_email_to: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'hunter_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = _env_int("DB_CONNECT_TIMEOUT", self.db_connect_timeout)

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.llm_provider = os.getenv("LLM_PROVIDER", self.llm_provider)
        self.llm_api_key = os.getenv("LLM_API_KEY")
        legacy_model = os.getenv("LLM_MODEL")
        self.llm_model_relevance = (
            os.getenv("LLM_MODEL_RELEVANCE") or legacy_model or self.llm_model_relevance
        )
        self.llm_model_classify = (
            os.getenv("LLM_MODEL_CLASSIFY") or legacy_model or self.llm_model_classify
        )
        self.llm_timeout = float(os.getenv("LLM_TIMEOUT", str(self.llm_timeout)))
        self.llm_max_retries = _env_int("LLM_MAX_RETRIES", self.llm_max_retries)

        self.hunter_collect_batch_size = _env_int(
            "HUNTER_COLLECT_BATCH_SIZE", self.hunter_collect_batch_size
        )
        self.hunter_filter_batch_size = _env_int(
            "HUNTER_FILTER_BATCH_SIZE", self.hunter_filter_batch_size
        )
        self.hunter_classify_batch_size = _env_int(
            "HUNTER_CLASSIFY_BATCH_SIZE", self.hunter_classify_batch_size
        )
        self.hunter_collect_max_pages = _env_int(
            "HUNTER_COLLECT_MAX_PAGES", self.hunter_collect_max_pages
        )
        self.hunter_item_timeout_seconds = float(
            os.getenv("HUNTER_ITEM_TIMEOUT_SECONDS", str(self.hunter_item_timeout_seconds))
        )
        self.hunter_item_max_attempts = _env_int(
            "HUNTER_ITEM_MAX_ATTEMPTS", self.hunter_item_max_attempts
        )
        self.hunter_job_max_attempts = _env_int(
            "HUNTER_JOB_MAX_ATTEMPTS", self.hunter_job_max_attempts
        )
        self.hunter_retry_backoff_seconds = _env_int(
            "HUNTER_RETRY_BACKOFF_SECONDS", self.hunter_retry_backoff_seconds
        )
        self.hunter_stale_job_seconds = _env_int(
            "HUNTER_STALE_JOB_SECONDS", self.hunter_stale_job_seconds
        )
        self.hunter_max_running_scans_per_project = _env_int(
            "HUNTER_MAX_RUNNING_SCANS_PER_PROJECT",
            self.hunter_max_running_scans_per_project,
        )
        self.hunter_relevance_include_threshold = _env_int(
            "HUNTER_RELEVANCE_INCLUDE_THRESHOLD", self.hunter_relevance_include_threshold
        )
        self.hunter_relevance_review_threshold = _env_int(
            "HUNTER_RELEVANCE_REVIEW_THRESHOLD", self.hunter_relevance_review_threshold
        )

        self.hunter_use_static_source = _env_flag("HUNTER_USE_STATIC_SOURCE")
        self.reddit_user_agent = os.getenv("REDDIT_USER_AGENT", self.reddit_user_agent)

        self.hunter_notify_email_to = os.getenv("HUNTER_NOTIFY_EMAIL_TO", "")
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_from = os.getenv("SMTP_FROM", "")
