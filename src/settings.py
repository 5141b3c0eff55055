"""Static configuration for tagstash.

All user-editable settings (access lists, album batching, tags, webhook,
logging) live in a single JSON file for quick edits without touching Python.
Secrets stay in the environment (.env).
"""

import json
import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from core.config import AccessConfig, AlbumConfig, IngestConfig, TagDefaults

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root unless TAGSTASH_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("TAGSTASH_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Fallback allow-lists; the live lists are read from Redis on every update.
ACCESS = AccessConfig.from_dict(_CONFIG.get("access", {}))

# Where to store the SQLite record database.
_storage = _CONFIG.get("storage", {})
DB_PATH = _resolve_path(_storage.get("db_path", "data/tagstash.db"))

# Redis holds album batches and the live access lists.
_redis = _CONFIG.get("redis", {})
REDIS_URL = os.getenv("REDIS_URL") or _redis.get("url", "redis://localhost:6379/0")
REDIS_PREFIX = _redis.get("prefix", "tagstash:")

# Album batching: TTL must outlast delivery jitter, the delay is per part.
_media_group = _CONFIG.get("media_group", {})
ALBUM = AlbumConfig(
    ttl_seconds=int(_media_group.get("ttl_seconds", 60)),
    finalize_delay_seconds=float(_media_group.get("finalize_delay_seconds", 2)),
    max_size=int(_media_group.get("max_size", 10)),
)

_tags = _CONFIG.get("tags", {})
TAG_DEFAULTS = TagDefaults(
    private=_tags.get("private_default", "inbox"),
    channel=_tags.get("channel_default", "channel"),
    album=_tags.get("album_default", "media"),
)

_notifications = _CONFIG.get("notifications", {})
PREVIEW_CHARS = int(_notifications.get("preview_chars", 80))

# Record timestamps use this zone; UTC when unset.
TIMEZONE_NAME = _CONFIG.get("timezone")
TIMEZONE = ZoneInfo(TIMEZONE_NAME) if TIMEZONE_NAME else None

INGEST = IngestConfig(
    album=ALBUM,
    tags=TAG_DEFAULTS,
    preview_chars=PREVIEW_CHARS,
    timezone=TIMEZONE,
)

# Webhook server settings used by the serve and set-webhook commands.
_webhook = _CONFIG.get("webhook", {})
WEBHOOK_HOST = _webhook.get("host", "0.0.0.0")
WEBHOOK_PORT = int(_webhook.get("port", 8080))
WEBHOOK_PATH = _webhook.get("path", "/telegram/webhook")
WEBHOOK_PUBLIC_URL = _webhook.get("public_url", "")

# Secrets come from the environment only.
BOT_TOKEN = os.getenv("BOT_TOKEN", "")
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
