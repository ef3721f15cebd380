# config/settings.py
import os
import sys
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import AliasChoices, ValidationError, ValidationInfo, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from util.enums import Environment, PartitionMode, RoutingMode
import logging

logger = logging.getLogger(__name__)


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

DEFAULT_STATE_PREFIX = "serena-mcp/default/serena-home"
DEFAULT_ROUTE_GENERATION = "gen-1"
TRUTHY = frozenset({"1", "true", "yes", "on"})
FALSY = frozenset({"", "0", "false", "no", "off"})


class Settings(BaseSettings):
    # Blank variables (e.g. injected as "") fall back to the defaults below.
    model_config = SettingsConfigDict(env_ignore_empty=True, extra="ignore")

    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    ALLOWED_ORIGIN: str = Field(default="*", validation_alias="ALLOWED_ORIGIN")
    HOST: str = Field(default="127.0.0.1", validation_alias="HOST")
    PORT: int = Field(default=8000, gt=0, lt=65536, validation_alias="PORT")

    # Auth
    API_TOKEN: Optional[str] = Field(default=None, validation_alias="API_TOKEN")
    API_TOKENS_JSON: Optional[str] = Field(
        default=None, validation_alias="API_TOKENS_JSON"
    )

    # Tenant routing
    MCP_CONTAINER_ROUTE_GENERATION: str = Field(
        default=DEFAULT_ROUTE_GENERATION,
        validation_alias="MCP_CONTAINER_ROUTE_GENERATION",
    )
    ROUTE_NAME_PREFIX: str = Field(
        default="serena-mcp", validation_alias="ROUTE_NAME_PREFIX"
    )
    BACKEND_URL_TEMPLATE: str = Field(
        default="http://127.0.0.1:8080", validation_alias="BACKEND_URL_TEMPLATE"
    )
    BACKEND_CONNECT_TIMEOUT_SECONDS: float = Field(
        default=10.0, gt=0, validation_alias="BACKEND_CONNECT_TIMEOUT_SECONDS"
    )

    # Snapshot lifecycle
    SERENA_R2_SNAPSHOT_ENABLED: bool = Field(
        default=False, validation_alias="SERENA_R2_SNAPSHOT_ENABLED"
    )
    SERENA_R2_STATE_ENABLED: bool = Field(
        default=False, validation_alias="SERENA_R2_STATE_ENABLED"
    )
    SERENA_R2_SNAPSHOT_PREFIX: Optional[str] = Field(
        default=None, validation_alias="SERENA_R2_SNAPSHOT_PREFIX"
    )
    SERENA_R2_STATE_PREFIX: str = Field(
        default=DEFAULT_STATE_PREFIX, validation_alias="SERENA_R2_STATE_PREFIX"
    )
    SERENA_R2_STATE_PARTITION_MODE: PartitionMode = Field(
        default=PartitionMode.NONE, validation_alias="SERENA_R2_STATE_PARTITION_MODE"
    )
    SERENA_INSTANCE_NAME: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "SERENA_INSTANCE_NAME", "CLOUDFLARE_DURABLE_OBJECT_ID"
        ),
    )
    SERENA_R2_STATE_STRICT: bool = Field(
        default=False, validation_alias="SERENA_R2_STATE_STRICT"
    )
    SERENA_R2_SNAPSHOT_INTERVAL_SECONDS: int = Field(
        default=180, ge=0, validation_alias="SERENA_R2_SNAPSHOT_INTERVAL_SECONDS"
    )
    SERENA_R2_SNAPSHOT_RETENTION_COUNT: int = Field(
        default=5, ge=0, validation_alias="SERENA_R2_SNAPSHOT_RETENTION_COUNT"
    )
    SERENA_R2_SNAPSHOT_MAX_ATTEMPTS: int = Field(
        default=3, ge=1, validation_alias="SERENA_R2_SNAPSHOT_MAX_ATTEMPTS"
    )
    SERENA_R2_SNAPSHOT_RETRY_BACKOFF_SECONDS: float = Field(
        default=1.0, ge=0, validation_alias="SERENA_R2_SNAPSHOT_RETRY_BACKOFF_SECONDS"
    )
    SERENA_R2_REQUEST_TIMEOUT_SECONDS: float = Field(
        default=60.0, gt=0, validation_alias="SERENA_R2_REQUEST_TIMEOUT_SECONDS"
    )
    SERENA_LOCAL_STATE_DIR: str = Field(
        default="/app/.serena",
        validation_alias=AliasChoices("SERENA_LOCAL_STATE_DIR", "SERENA_HOME"),
    )

    # Object store (S3-compatible)
    R2_ACCOUNT_ID: Optional[str] = Field(default=None, validation_alias="R2_ACCOUNT_ID")
    R2_ENDPOINT_URL: Optional[str] = Field(
        default=None, validation_alias="R2_ENDPOINT_URL"
    )
    R2_BUCKET_NAME: Optional[str] = Field(
        default=None, validation_alias="R2_BUCKET_NAME"
    )
    AWS_ACCESS_KEY_ID: Optional[str] = Field(
        default=None, validation_alias="AWS_ACCESS_KEY_ID"
    )
    AWS_SECRET_ACCESS_KEY: Optional[str] = Field(
        default=None, validation_alias="AWS_SECRET_ACCESS_KEY", repr=False
    )
    AWS_DEFAULT_REGION: str = Field(default="auto", validation_alias="AWS_DEFAULT_REGION")

    # Logging knobs
    LOGGER_NAME: str = "serena-edge"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    @field_validator("MCP_CONTAINER_ROUTE_GENERATION", mode="before")
    @classmethod
    def _strip_generation(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or DEFAULT_ROUTE_GENERATION
        return v

    @field_validator("SERENA_R2_STATE_PARTITION_MODE", mode="before")
    @classmethod
    def _partition_mode_or_none(cls, v):
        if not isinstance(v, str):
            return v
        raw = v.strip().lower()
        # "durable-object" is the name older deployments used for per-instance partitioning.
        if raw == "durable-object":
            return PartitionMode.PER_INSTANCE
        if raw in {m.value for m in PartitionMode}:
            return raw
        logger.warning("settings.fallback name=SERENA_R2_STATE_PARTITION_MODE value=%r using=none", v)
        return PartitionMode.NONE

    @field_validator(
        "SERENA_R2_SNAPSHOT_INTERVAL_SECONDS",
        "SERENA_R2_SNAPSHOT_RETENTION_COUNT",
        mode="before",
    )
    @classmethod
    def _count_or_default(cls, v, info: ValidationInfo):
        # Snapshot knobs never keep the router from booting: bad values fall back.
        if isinstance(v, int) and not isinstance(v, bool) and v >= 0:
            return v
        if isinstance(v, str) and v.strip().isascii() and v.strip().isdigit():
            return int(v.strip())
        default = cls.model_fields[info.field_name].default
        logger.warning("settings.fallback name=%s value=%r using=%s", info.field_name, v, default)
        return default

    @field_validator(
        "SERENA_R2_SNAPSHOT_ENABLED",
        "SERENA_R2_STATE_ENABLED",
        "SERENA_R2_STATE_STRICT",
        mode="before",
    )
    @classmethod
    def _truthy(cls, v, info: ValidationInfo):
        if isinstance(v, bool):
            return v
        raw = str(v).strip().lower()
        if raw in TRUTHY:
            return True
        if raw not in FALSY:
            logger.warning("settings.fallback name=%s value=%r using=false", info.field_name, v)
        return False

    # ---------------- Derived values ----------------

    @property
    def routing_mode(self) -> RoutingMode:
        return RoutingMode.MULTI if (self.API_TOKENS_JSON or "").strip() else RoutingMode.SINGLE

    @property
    def snapshot_requested(self) -> bool:
        return self.SERENA_R2_SNAPSHOT_ENABLED or self.SERENA_R2_STATE_ENABLED

    @property
    def snapshot_base_prefix(self) -> str:
        return (self.SERENA_R2_SNAPSHOT_PREFIX or "").strip() or self.SERENA_R2_STATE_PREFIX

    @property
    def r2_endpoint_url(self) -> Optional[str]:
        if self.R2_ENDPOINT_URL:
            return self.R2_ENDPOINT_URL
        if self.R2_ACCOUNT_ID:
            return f"https://{self.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"
        return None

    def missing_snapshot_settings(self) -> List[str]:
        missing: List[str] = []
        if not self.AWS_ACCESS_KEY_ID:
            missing.append("AWS_ACCESS_KEY_ID")
        if not self.AWS_SECRET_ACCESS_KEY:
            missing.append("AWS_SECRET_ACCESS_KEY")
        if not self.r2_endpoint_url:
            missing.append("R2_ACCOUNT_ID")
        if not self.R2_BUCKET_NAME:
            missing.append("R2_BUCKET_NAME")
        return missing


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
