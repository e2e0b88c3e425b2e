import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    database_url: str = Field(
        default=os.getenv("DATABASE_URL", "sqlite:///./dartbit.db")
    )
    db_pool_size: int = Field(default=int(os.getenv("DB_POOL_SIZE", "5")))
    db_max_overflow: int = Field(default=int(os.getenv("DB_MAX_OVERFLOW", "10")))
    db_pool_timeout: int = Field(default=int(os.getenv("DB_POOL_TIMEOUT", "30")))
    db_pool_recycle: int = Field(default=int(os.getenv("DB_POOL_RECYCLE", "1800")))

    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))

    # RouterOS API access
    routeros_timeout_sec: float = Field(default=float(os.getenv("ROUTEROS_TIMEOUT_SEC", "5")))
    routeros_default_port: int = Field(default=int(os.getenv("ROUTEROS_DEFAULT_PORT", "8728")))
    routeros_use_ssl: bool = Field(default=_env_bool("ROUTEROS_USE_SSL", "false"))
    routeros_default_username: str = Field(
        default=os.getenv("ROUTEROS_DEFAULT_USERNAME", "admin")
    )

    # Fleet-wide fan-out
    node_operation_timeout_sec: float = Field(
        default=float(os.getenv("NODE_OPERATION_TIMEOUT_SEC", "15"))
    )
    fleet_max_workers: int = Field(default=int(os.getenv("FLEET_MAX_WORKERS", "16")))

    # Subscriber/plan sync
    sync_max_attempts: int = Field(default=int(os.getenv("SYNC_MAX_ATTEMPTS", "2")))
    sync_retry_backoff_sec: float = Field(
        default=float(os.getenv("SYNC_RETRY_BACKOFF_SEC", "0.5"))
    )
    sync_comment_prefix: str = Field(default=os.getenv("SYNC_COMMENT_PREFIX", "dartbit"))
    default_subscriber_password: str = Field(
        default=os.getenv("DEFAULT_SUBSCRIBER_PASSWORD", "1234")
    )

    throughput_cache_max_entries: int = Field(
        default=int(os.getenv("THROUGHPUT_CACHE_MAX_ENTRIES", "10000"))
    )

    # Zero-touch provisioning defaults baked into the boot script
    provision_username: str = Field(default=os.getenv("PROVISION_USERNAME", "dartbit"))
    provision_password: str = Field(default=os.getenv("PROVISION_PASSWORD", "dartbit123"))
    provision_identity: str = Field(
        default=os.getenv("PROVISION_IDENTITY", "dartbit-ActiveNode")
    )
    provision_timezone: str = Field(default=os.getenv("PROVISION_TIMEZONE", "Africa/Nairobi"))
    provision_uplink_interface: str = Field(
        default=os.getenv("PROVISION_UPLINK_INTERFACE", "ether1")
    )
    provision_dns_servers: str = Field(
        default=os.getenv("PROVISION_DNS_SERVERS", "8.8.8.8,1.1.1.1")
    )
    bridge_public_port: int = Field(default=int(os.getenv("BRIDGE_PUBLIC_PORT", "5000")))

    @field_validator("sync_max_attempts", mode="after")
    @classmethod
    def validate_sync_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SYNC_MAX_ATTEMPTS must be at least 1")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        frozen = True


settings = Settings()
