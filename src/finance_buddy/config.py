"""
Runtime configuration for Finance Buddy.

Values come from the process environment, optionally seeded from a `.env`
file in the working directory.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).parent.resolve()
DEFAULT_DB_PATH = PACKAGE_DIR / "db" / "finance_buddy.db"

load_dotenv()


class Settings:
    """Snapshot of the environment used to wire the app together."""

    def __init__(self, env: Optional[dict] = None):
        env = os.environ if env is None else env

        self.db_path       = env.get("FINANCE_BUDDY_DB", str(DEFAULT_DB_PATH))
        self.backend       = env.get("FINANCE_BUDDY_BACKEND", "sqlite").lower()
        self.supabase_url  = env.get("SUPABASE_URL")
        self.supabase_key  = env.get("SUPABASE_KEY")
        self.openai_key    = env.get("OPENAI_API_KEY")
        self.log_dir       = env.get("FINANCE_BUDDY_LOG_DIR", "logs")
        self.fetch_timeout = float(env.get("FINANCE_BUDDY_FETCH_TIMEOUT", "10"))
        self.port          = int(env.get("FINANCE_BUDDY_PORT", "5013"))

    def uses_rest(self) -> bool:
        return self.backend == "rest"


_settings = None


def get_settings() -> Settings:
    """Get or create the global settings"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    global _settings
    _settings = None
