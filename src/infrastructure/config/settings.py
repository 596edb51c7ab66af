"""
Unified Configuration Settings - Single Source of Truth
=======================================================
All application configuration using Pydantic Settings.
Every section can be overridden from the environment with its own prefix,
or through the nested form on AppSettings (e.g. COLLABORATION__WS_PATH).
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from enum import Enum


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class SessionStoreBackend(str, Enum):
    """Durable session store implementations"""
    POSTGRES = "postgres"
    MEMORY = "memory"


# === LOGGING CONFIGURATION ===

class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_enabled: bool = Field(default=False)
    console_enabled: bool = Field(default=True)
    structured_logging: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    max_file_size_mb: int = Field(default=100)
    backup_count: int = Field(default=5)

    class Config:
        env_prefix = "LOG_"


# === DATABASE CONFIGURATION ===

class DatabaseSettings(BaseSettings):
    """Session store connection configuration"""
    backend: SessionStoreBackend = Field(default=SessionStoreBackend.POSTGRES, description="Session store backend")
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    database: str = Field(default="schemaforge")
    user: str = Field(default="schemaforge")
    password: str = Field(default="")
    min_pool_size: int = Field(default=2, description="Minimum pooled connections")
    max_pool_size: int = Field(default=10, description="Maximum pooled connections")
    command_timeout: float = Field(default=10.0, description="Per-statement timeout in seconds")

    @field_validator('max_pool_size')
    @classmethod
    def validate_pool_size(cls, v, info):
        min_size = info.data.get('min_pool_size', 1)
        if v < min_size:
            raise ValueError(f"max_pool_size ({v}) must be >= min_pool_size ({min_size})")
        return v

    @property
    def dsn(self) -> str:
        """PostgreSQL connection string"""
        auth = f"{self.user}:{self.password}" if self.password else self.user
        return f"postgresql://{auth}@{self.host}:{self.port}/{self.database}"

    class Config:
        env_prefix = "DB_"


# === COLLABORATION CONFIGURATION ===

class CollaborationSettings(BaseSettings):
    """Real-time collaboration configuration"""
    ws_path: str = Field(default="/ws/collaborate", description="WebSocket endpoint path")
    reaper_interval_seconds: float = Field(default=30.0, description="Interval between stale-session sweeps")
    stale_session_seconds: float = Field(default=300.0, description="Silence after which a session is reaped")
    max_message_bytes: int = Field(default=1_000_000, description="Inbound frames larger than this are dropped")
    send_timeout_seconds: float = Field(default=1.0, description="Per-peer send deadline; slower peers miss the frame")

    @field_validator('reaper_interval_seconds', 'stale_session_seconds', 'send_timeout_seconds')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("interval must be positive")
        return v

    @field_validator('ws_path')
    @classmethod
    def validate_ws_path(cls, v):
        if not v.startswith("/"):
            raise ValueError(f"ws_path must start with '/': {v!r}")
        return v

    class Config:
        env_prefix = "COLLAB_"


# === SERVER CONFIGURATION ===

class ServerSettings(BaseSettings):
    """HTTP server binding"""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    class Config:
        env_prefix = "SERVER_"


# === MAIN APPLICATION SETTINGS ===

class AppSettings(BaseSettings):
    """Main application settings - Single Source of Truth"""

    app_name: str = Field(default="SchemaForge Collaboration")
    version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    collaboration: CollaborationSettings = Field(default_factory=CollaborationSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    config_dir: str = Field(default="config")

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"  # Allows COLLABORATION__WS_PATH=/ws
        case_sensitive = False
        extra = "ignore"
