"""
config.py — Bot settings read from the environment / .env.

Required env vars:
    TELEGRAM_BOT_TOKEN=...
    SUPABASE_URL=...
    SUPABASE_KEY=...
    ALERTS_CHANNEL_ID=...

Optional:
    STORAGE_BUCKET=gmon.link
    PUBLIC_BASE_URL=gmon.link
    CONVERSATION_TIMEOUT=1800     # seconds, 0 = wait forever
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

REQUIRED_VARS = (
    "TELEGRAM_BOT_TOKEN",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "ALERTS_CHANNEL_ID",
)

DEFAULT_BUCKET = "gmon.link"
DEFAULT_PUBLIC_BASE_URL = "gmon.link"
DEFAULT_CONVERSATION_TIMEOUT = 1800


@dataclass(frozen=True)
class BotSettings:
    bot_token: str
    supabase_url: str
    supabase_key: str
    alerts_channel_id: str
    storage_bucket: str = DEFAULT_BUCKET
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    conversation_timeout: Optional[float] = DEFAULT_CONVERSATION_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BotSettings":
        """
        Build settings from ``environ`` (defaults to ``os.environ`` after
        loading ``.env``). Raises ConfigError naming every missing variable.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        missing = [name for name in REQUIRED_VARS if not environ.get(name)]
        if missing:
            raise ConfigError(f"missing environment variables: {', '.join(missing)}")

        raw_timeout = environ.get("CONVERSATION_TIMEOUT", "").strip()
        try:
            timeout = float(raw_timeout) if raw_timeout else float(DEFAULT_CONVERSATION_TIMEOUT)
        except ValueError as e:
            raise ConfigError(f"CONVERSATION_TIMEOUT must be a number, got {raw_timeout!r}") from e

        return cls(
            bot_token=environ["TELEGRAM_BOT_TOKEN"],
            supabase_url=environ["SUPABASE_URL"],
            supabase_key=environ["SUPABASE_KEY"],
            alerts_channel_id=environ["ALERTS_CHANNEL_ID"],
            storage_bucket=environ.get("STORAGE_BUCKET") or DEFAULT_BUCKET,
            public_base_url=(environ.get("PUBLIC_BASE_URL") or DEFAULT_PUBLIC_BASE_URL).rstrip("/"),
            conversation_timeout=timeout if timeout > 0 else None,
        )
