#!/usr/bin/env python3
"""
run_bot.py — gmon.link project bot entry point.

Usage:
    python run_bot.py

Required env vars (in .env):
    TELEGRAM_BOT_TOKEN=...
    SUPABASE_URL=...
    SUPABASE_KEY=...
    ALERTS_CHANNEL_ID=...
"""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    format="%(asctime)s — %(levelname)s — %(name)s — %(message)s",
    level=logging.INFO,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def main() -> None:
    from gmonlink_bot.config import BotSettings
    from gmonlink_bot.errors import ConfigError

    try:
        settings = BotSettings.from_env()
    except ConfigError as e:
        logger.error(f"{e} (set them in the environment / .env)")
        sys.exit(1)

    logger.info("Starting gmon.link project bot...")
    logger.info("Polling for updates — press Ctrl+C to stop")

    from gmonlink_bot.telegram_bot import build_app
    app = build_app(settings)
    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
