import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool = False
    db_pool_size: int = 20

    rabbitmq_url: Optional[str] = None
    rabbitmq_queue: str = "inventory_notifications"

    # Capacity given to a night that nobody has configured yet
    default_max_sales_quantity: int = 10

    reservation_max_attempts: int = 5
    reservation_retry_delay: float = 0.05
    lock_timeout_ms: int = 5000

    notify_timeout: float = 5.0
    reconcile_interval: float = 0
    create_tables_on_startup: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        load_dotenv(dotenv_path=env_file or BASE_DIR / ".env")

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            # psycopg driver: pip install psycopg[binary]
            database_url = "postgresql+psycopg://{user}:{password}@{host}:{port}/{name}".format(
                user=os.getenv("DB_USER"),
                password=os.getenv("DB_PASS"),
                host=os.getenv("DB_HOST", "localhost"),
                port=os.getenv("DB_PORT", "5432"),
                name=os.getenv("DB_NAME"),
            )

        return cls(
            database_url=database_url,
            db_echo=_as_bool(os.getenv("DB_ECHO")),
            db_pool_size=int(os.getenv("DB_POOL_SIZE", "20")),
            rabbitmq_url=os.getenv("RABBITMQ_URL") or None,
            rabbitmq_queue=os.getenv("RABBITMQ_QUEUE", "inventory_notifications"),
            default_max_sales_quantity=int(os.getenv("DEFAULT_MAX_SALES_QUANTITY", "10")),
            reservation_max_attempts=int(os.getenv("RESERVATION_MAX_ATTEMPTS", "5")),
            reservation_retry_delay=float(os.getenv("RESERVATION_RETRY_DELAY", "0.05")),
            lock_timeout_ms=int(os.getenv("LOCK_TIMEOUT_MS", "5000")),
            notify_timeout=float(os.getenv("NOTIFY_TIMEOUT", "5")),
            reconcile_interval=float(os.getenv("RECONCILE_INTERVAL", "0")),
            create_tables_on_startup=_as_bool(os.getenv("CREATE_TABLES")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
