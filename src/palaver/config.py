"""Runtime settings, read from ``PALAVER_*`` environment variables."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .kv import File, InMemory, KeyValue, SQLite

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
StorageKind = Literal["memory", "file", "sqlite", "none"]


class Settings(BaseSettings):
    """Defaults for the pillars Palaver builds when none are injected.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. PALAVER_* environment variables
    3. Constructor arguments
    """

    model_config = SettingsConfigDict(
        env_prefix="PALAVER_",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: LogLevel = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(
        default="console", description="Log renderer"
    )
    storage: StorageKind = Field(
        default="memory", description="Key-value backend for session records"
    )
    storage_path: Path = Field(
        default=Path(".palaver"),
        description="Directory (file) or database file (sqlite) for storage",
    )
    reply_delay: float = Field(
        default=1.5, ge=0, description="Seconds the canned generator waits"
    )

    def build_kv(self) -> Optional[KeyValue]:
        """The key-value backend these settings describe, or None for no storage."""
        if self.storage == "memory":
            return InMemory()
        if self.storage == "file":
            return File(str(self.storage_path))
        if self.storage == "sqlite":
            path = self.storage_path
            if path.suffix != ".db":
                path = path / "sessions.db"
            return SQLite(str(path))
        return None
