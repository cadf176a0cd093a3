import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class Settings:

    mongo_url: Optional[str] = None
    mongo_db_name: str = "dmchat"
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    heartbeat_interval_seconds: float = 30.0
    send_queue_size: int = 256
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongo_url=os.getenv("MONGO_URL") or None,
            mongo_db_name=os.getenv("MONGO_DB_NAME", "dmchat"),
            jwt_secret=os.getenv("JWT_SECRET", "change-me"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            heartbeat_interval_seconds=float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "30")),
            send_queue_size=int(os.getenv("SEND_QUEUE_SIZE", "256")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
