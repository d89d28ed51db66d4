"""
Server Configuration

Loads configuration from environment variables and provides defaults.
Supports loading from .env file using python-dotenv.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Single .env at the project root
root_env = Path(__file__).resolve().parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)

VECTOR_BACKENDS = ("pgvector", "qdrant", "memory")
DATA_SOURCES = ("postgres", "json")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _bool_env(key: str, default: bool) -> bool:
    v = os.getenv(key)
    if v is None or not v.strip():
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _choice_env(key: str, choices: tuple, default: str) -> str:
    v = (os.getenv(key) or "").strip().lower()
    return v if v in choices else default


@dataclass
class ServerConfig:
    """Server configuration."""

    # API Keys
    openai_api_key: Optional[str] = None

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Embedding / AI providers
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    ai_model: str = "gpt-4o-mini"

    # Per-call timeouts (seconds)
    ai_timeout_seconds: float = 60.0
    embedding_timeout_seconds: float = 30.0
    cache_timeout_seconds: float = 2.0
    db_timeout_seconds: float = 5.0

    # Data and vector backends
    data_source: str = "json"
    database_url: Optional[str] = None
    fixtures_path: Path = Path(__file__).parent.parent / "data" / "gym.json"
    vector_backend: str = "memory"
    qdrant_url: Optional[str] = None
    qdrant_collection: str = "gym_classes"

    # Cache
    redis_url: Optional[str] = None
    recommendation_ttl_seconds: int = 3600
    listing_ttl_seconds: int = 1800
    cache_warming_enabled: bool = True
    cache_warming_interval_seconds: int = 3600
    cache_warming_initial_delay_seconds: int = 30

    # Timezone used for hour-of-day / day-of-week patterns
    gym_timezone: str = "UTC"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        base_dir = Path(__file__).parent.parent

        def _path_env(key: str, default: Path) -> Path:
            v = os.getenv(key)
            if not v:
                return default
            p = Path(v)
            return p if p.is_absolute() else (base_dir / p).resolve()

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", "1536")),
            ai_model=os.getenv("AI_MODEL", "gpt-4o-mini"),
            ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "60")),
            embedding_timeout_seconds=float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "30")),
            cache_timeout_seconds=float(os.getenv("CACHE_TIMEOUT_SECONDS", "2")),
            db_timeout_seconds=float(os.getenv("DB_TIMEOUT_SECONDS", "5")),
            data_source=_choice_env("DATA_SOURCE", DATA_SOURCES, "json"),
            database_url=os.getenv("DATABASE_URL") or None,
            fixtures_path=_path_env("FIXTURES_PATH", base_dir / "data" / "gym.json"),
            vector_backend=_choice_env("VECTOR_BACKEND", VECTOR_BACKENDS, "memory"),
            qdrant_url=os.getenv("QDRANT_URL") or None,
            qdrant_collection=os.getenv("QDRANT_COLLECTION", "gym_classes"),
            redis_url=os.getenv("REDIS_URL") or None,
            recommendation_ttl_seconds=int(os.getenv("RECOMMENDATION_TTL_SECONDS", "3600")),
            listing_ttl_seconds=int(os.getenv("LISTING_TTL_SECONDS", "1800")),
            cache_warming_enabled=_bool_env("CACHE_WARMING_ENABLED", True),
            cache_warming_interval_seconds=int(os.getenv("CACHE_WARMING_INTERVAL_SECONDS", "3600")),
            cache_warming_initial_delay_seconds=int(os.getenv("CACHE_WARMING_INITIAL_DELAY_SECONDS", "30")),
            gym_timezone=os.getenv("GYM_TIMEZONE", "UTC"),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate the configuration.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        if self.data_source == "postgres" and not self.database_url:
            errors.append("DATA_SOURCE=postgres requires DATABASE_URL")
        if self.data_source == "json" and not self.fixtures_path.exists():
            errors.append(f"Fixtures file not found: {self.fixtures_path}")
        if self.vector_backend == "pgvector" and not self.database_url:
            errors.append("VECTOR_BACKEND=pgvector requires DATABASE_URL")
        if self.vector_backend == "qdrant" and not self.qdrant_url:
            errors.append("VECTOR_BACKEND=qdrant requires QDRANT_URL")
        try:
            ZoneInfo(self.gym_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown GYM_TIMEZONE: {self.gym_timezone}")

        return len(errors) == 0, errors

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.gym_timezone)


def configure_logging(level: str = "INFO") -> None:
    """Root logging format for the service; safe to call more than once."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
