"""Settings from .env and the single process-wide initialization point."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DRAFT_PATH = Path(".tryxpert") / "drafts.json"
PLACEHOLDER_USER_ID = "current_user_id"

# HTTP client chatter from the Supabase SDK
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None = None
    supabase_key: str | None = None
    draft_path: Path = DEFAULT_DRAFT_PATH
    log_level: str = "INFO"
    remote_submit: bool = False
    user_id: str = PLACEHOLDER_USER_ID

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.environ.get("SUPABASE_URL"),
            supabase_key=os.environ.get("SUPABASE_KEY"),
            draft_path=Path(os.environ.get("TRYXPERT_DRAFT_PATH") or DEFAULT_DRAFT_PATH),
            log_level=(os.environ.get("TRYXPERT_LOG_LEVEL") or "INFO").upper(),
            remote_submit=_env_flag("TRYXPERT_REMOTE_SUBMIT"),
            user_id=os.environ.get("TRYXPERT_USER_ID") or PLACEHOLDER_USER_ID,
        )

    def require_supabase(self) -> tuple[str, str]:
        if not self.supabase_url or not self.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
        return self.supabase_url, self.supabase_key


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging once and quiet the HTTP client loggers."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s: %(message)s")
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logging.getLogger("tryxpert")


def init_app(settings: Settings | None = None):
    """Configure logging and read the persisted theme. Returns (settings, draft store, theme)."""
    from tryxpert.draft_store import JsonFileStore, load_theme

    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    store = JsonFileStore(settings.draft_path)
    theme = load_theme(store)
    logging.getLogger(__name__).info("TryXpert initialized (drafts=%s, theme=%s)", settings.draft_path, theme)
    return settings, store, theme
