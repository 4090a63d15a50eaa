# src/config/settings.py

"""Central configuration for the refurb_tracker service."""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("refurb_tracker.config")


class Settings:
    """Central configuration for the refurb_tracker service."""

    # --- Scraping ---
    PAGE_TIMEOUT: float = 30.0          # Seconds before a page fetch fails
    PAGE_SETTLE_DELAY: float = 2.0      # Seconds to wait after a page load
    MAX_RETRIES: int = 3                # Attempts per source per cycle
    RETRY_DELAY: float = 5.0            # Seconds between source attempts

    # --- Resilience ---
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]
    CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "zh-TW,zh;q=0.9,en-US;q=0.8,en;q=0.7",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Scheduling ---
    TRACKING_INTERVAL: float = 3600.0     # One cycle per hour
    SUMMARY_POLL_INTERVAL: float = 600.0  # Summary check every 10 minutes
    SUMMARY_INITIAL_DELAY: float = 5.0    # First summary check after startup
    SUMMARY_TIMEZONE: str = "Asia/Taipei"
    SUMMARY_CATCHUP_MINUTES: int | None = None  # None = no upper bound

    # --- Notification ---
    BATCH_SIZE: int = 10
    BATCH_DELAY: float = 1.0            # Seconds between batches
    RULE_SEPARATOR: str = ", "
    SHORTENER_ENDPOINT: str = "https://is.gd/create.php"
    SHORTENER_TIMEOUT: float = 10.0
    LINE_API_BASE: str = "https://api.line.me/v2/bot/message"
    LINE_CHANNEL_ACCESS_TOKEN: str = os.getenv(
        "LINE_CHANNEL_ACCESS_TOKEN", ""
    )
    LINE_CHANNEL_SECRET: str = os.getenv("LINE_CHANNEL_SECRET", "")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    EMAIL_SUBJECT: str = "🍎 Apple refurbished update"

    # --- Storage ---
    SNAPSHOT_RETENTION_DAYS: int = 30
    HISTORY_BATCH_SIZE: int = 450

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DB_PATH: Path = Path(
        os.getenv("REFURB_DB_PATH", str(BASE_DIR / "data" / "tracker.db"))
    )
    CONFIG_PATH: Path = BASE_DIR / "config.json"
    LOGS_DIR: Path = BASE_DIR / "logs"
    LOG_RETENTION_RUNS: int = 14

    # --- Sources (registry) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "apple",
            "label": "Apple Refurbished",
            "scraper": "src.scrapers.apple_scraper.AppleScraper",
        },
        {
            "id": "pchome",
            "label": "PChome 24h",
            "scraper": "src.scrapers.pchome_scraper.PChomeScraper",
        },
    ]


DEFAULT_APP_CONFIG: dict[str, Any] = {
    "line": {
        "enabled": True,
        "channel_access_token": "",
        "channel_secret": "",
    },
    "email": {},
    "scrapers": {
        "apple": {
            "enabled": True,
            "categories": ["mac", "ipad", "appletv"],
        },
        "pchome": {
            "enabled": False,
            "categories": ["mac", "ipad"],
        },
    },
}


def _load_json(raw: str | None, origin: str) -> dict[str, Any] | None:
    """Parse a JSON object, logging and ignoring malformed input."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("Ignoring malformed config from %s: %s", origin, exc)
        return None
    if not isinstance(data, dict):
        logger.error("Ignoring non-object config from %s", origin)
        return None
    return data


def merge_deep(
    target: dict[str, Any], source: dict[str, Any] | None,
) -> dict[str, Any]:
    """Recursively merge *source* into *target*; lists and scalars replace."""
    if not source:
        return target
    for key, value in source.items():
        if isinstance(value, dict):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            merge_deep(existing, value)
        else:
            target[key] = value
    return target


def load_app_config(config_path: Path | None = None) -> dict[str, Any]:
    """Build the runtime config: defaults < config.json < APP_CONFIG_JSON.

    LINE credentials from the environment always win when present.
    """
    path = config_path or Settings.CONFIG_PATH
    file_config = None
    if path.exists():
        file_config = _load_json(
            path.read_text(encoding="utf-8"), str(path)
        )
    env_config = _load_json(
        os.getenv("APP_CONFIG_JSON"), "APP_CONFIG_JSON"
    )

    config = merge_deep(copy.deepcopy(DEFAULT_APP_CONFIG), file_config)
    config = merge_deep(config, env_config)

    line = config.setdefault("line", {})
    line["channel_access_token"] = (
        Settings.LINE_CHANNEL_ACCESS_TOKEN
        or line.get("channel_access_token", "")
    )
    line["channel_secret"] = (
        Settings.LINE_CHANNEL_SECRET or line.get("channel_secret", "")
    )

    email = config.setdefault("email", {})
    if Settings.SMTP_HOST:
        email.setdefault("host", Settings.SMTP_HOST)
        email.setdefault("port", Settings.SMTP_PORT)
        email.setdefault("user", Settings.SMTP_USER)
        email.setdefault("password", Settings.SMTP_PASSWORD)
    return config
