# backend/livechat/config.py
import os
from dataclasses import dataclass, field
from typing import List


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


@dataclass
class Settings:
    cors_origins: List[str] = field(default_factory=list)
    redis_url: str = ""
    database_url: str = "sqlite:///./livechat.db"
    archive_enabled: bool = True

    telegram_bot_token: str = ""
    operator_chat_ids: List[int] = field(default_factory=list)
    webhook_host: str = "http://localhost:8000"

    # "key=participant_id[:display name]" entries
    operator_api_keys: List[str] = field(default_factory=list)
    admin_api_keys: List[str] = field(default_factory=list)
    customer_api_keys: List[str] = field(default_factory=list)
    allow_guests: bool = True

    chat_inactive_days: int = 3
    closed_room_grace_seconds: int = 300
    sweep_interval_seconds: int = 3600
    max_message_length: int = 4000
    send_queue_size: int = 256

    log_level: str = "INFO"
    logs_as_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            cors_origins=_list("CORS_ORIGINS"),
            redis_url=os.getenv("REDIS_URL", ""),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./livechat.db"),
            archive_enabled=_flag("ARCHIVE_ENABLED", True),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            operator_chat_ids=[int(x) for x in _list("OPERATOR_CHAT_IDS")],
            webhook_host=os.getenv("WEBHOOK_HOST", "http://localhost:8000"),
            operator_api_keys=_list("OPERATOR_API_KEYS"),
            admin_api_keys=_list("ADMIN_API_KEYS"),
            customer_api_keys=_list("CUSTOMER_API_KEYS"),
            allow_guests=_flag("ALLOW_GUESTS", True),
            chat_inactive_days=int(os.getenv("CHAT_INACTIVE_DAYS", "3")),
            closed_room_grace_seconds=int(os.getenv("CLOSED_ROOM_GRACE_SECONDS", "300")),
            sweep_interval_seconds=int(os.getenv("SWEEP_INTERVAL_SECONDS", "3600")),
            max_message_length=int(os.getenv("MAX_MESSAGE_LENGTH", "4000")),
            send_queue_size=int(os.getenv("SEND_QUEUE_SIZE", "256")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            logs_as_json=_flag("LOGS_AS_JSON", False),
        )
