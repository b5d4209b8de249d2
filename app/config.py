import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv

# .env ফাইল থেকে লোড করছি, আগে থেকে সেট করা ভেরিয়েবল বদলাবে না
load_dotenv()

REQUIRED_ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "DATABASE_URL",
    "STORAGE_BUCKET_ID",
)

COLLECTION_DEFAULTS = {
    "users": "USERS_COLLECTION_ID",
    "resources": "RESOURCES_COLLECTION_ID",
    "subjects": "SUBJECTS_COLLECTION_ID",
    "downloads": "DOWNLOADS_COLLECTION_ID",
    "bookmarks": "BOOKMARKS_COLLECTION_ID",
}


class ConfigError(RuntimeError):
    pass


def collection_ids() -> Dict[str, str]:
    """Table name for each collection, falling back to the literal name."""
    return {name: os.getenv(var) or name for name, var in COLLECTION_DEFAULTS.items()}


@dataclass
class Settings:
    supabase_url: str
    supabase_key: str
    database_url: str
    storage_bucket_id: str
    collections: Dict[str, str] = field(default_factory=collection_ids)
    app_name: str = "BCA Student Library"
    app_url: str = "http://localhost:3000"
    session_ttl_days: int = 365
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    mail_username: str = ""
    mail_password: str = ""
    mail_server: str = "smtp.gmail.com"
    mail_port: int = 587

    @property
    def recovery_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/reset-password"

    @property
    def verification_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/verify"


def load_settings() -> Settings:
    for var in REQUIRED_ENV_VARS:
        if not os.getenv(var):
            raise ConfigError(f"Missing required environment variable: {var}")

    return Settings(
        supabase_url=os.environ["SUPABASE_URL"],
        supabase_key=os.environ["SUPABASE_KEY"],
        database_url=os.environ["DATABASE_URL"],
        storage_bucket_id=os.environ["STORAGE_BUCKET_ID"],
        collections=collection_ids(),
        app_name=os.getenv("APP_NAME", "BCA Student Library"),
        app_url=os.getenv("APP_URL", "http://localhost:3000"),
        session_ttl_days=int(os.getenv("SESSION_TTL_DAYS", "365")),
        cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        mail_username=os.getenv("MAIL_USERNAME", ""),
        mail_password=os.getenv("MAIL_PASSWORD", ""),
        mail_server=os.getenv("MAIL_SERVER", "smtp.gmail.com"),
        mail_port=int(os.getenv("MAIL_PORT", "587")),
    )
