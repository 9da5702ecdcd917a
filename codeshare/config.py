# codeshare/config.py
# Environment-driven settings. Invalid numbers fall back to defaults.

import os
from dataclasses import dataclass, field
from typing import List, Optional

from codeshare.utils import (
    MAX_CODE_ATTEMPTS,
    MAX_FILE_BYTES,
    MAX_TEXT_CHARS,
    SHARE_TTL_SECONDS,
    SWEEP_BATCH_SIZE,
    parse_int,
)


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Settings:
    database_url: str = "sqlite:///data/shares.sqlite3"
    blob_backend: str = "local"              # local | cloudinary
    blob_dir: str = "data/blobs"
    public_base_url: str = "http://localhost:5000"
    cloudinary_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: str = "clipboard"
    share_ttl_seconds: int = SHARE_TTL_SECONDS
    max_file_bytes: int = MAX_FILE_BYTES
    max_text_chars: int = MAX_TEXT_CHARS
    max_code_attempts: int = MAX_CODE_ATTEMPTS
    sweep_interval_seconds: int = 60
    sweep_batch_size: int = SWEEP_BATCH_SIZE
    sweeper_enabled: bool = True
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5000", "http://127.0.0.1:5000"]
    )
    api_key: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=_env("DATABASE_URL", defaults.database_url),
            blob_backend=_env("BLOB_BACKEND", defaults.blob_backend).lower(),
            blob_dir=_env("BLOB_DIR", defaults.blob_dir),
            public_base_url=_env(
                "PUBLIC_BASE_URL", f"http://localhost:{_env('PORT', '5000')}"
            ).rstrip("/"),
            cloudinary_name=_env("CLOUDINARY_NAME") or None,
            cloudinary_api_key=_env("CLOUDINARY_API_KEY") or None,
            cloudinary_api_secret=_env("CLOUDINARY_API_SECRET") or None,
            cloudinary_folder=_env("CLOUDINARY_FOLDER", defaults.cloudinary_folder),
            share_ttl_seconds=parse_int(os.environ.get("SHARE_TTL_SECONDS"), defaults.share_ttl_seconds),
            max_file_bytes=parse_int(os.environ.get("MAX_FILE_BYTES"), defaults.max_file_bytes),
            max_text_chars=parse_int(os.environ.get("MAX_TEXT_CHARS"), defaults.max_text_chars),
            max_code_attempts=parse_int(os.environ.get("MAX_CODE_ATTEMPTS"), defaults.max_code_attempts),
            sweep_interval_seconds=parse_int(
                os.environ.get("SWEEP_INTERVAL_SECONDS"), defaults.sweep_interval_seconds
            ),
            sweep_batch_size=parse_int(os.environ.get("SWEEP_BATCH_SIZE"), defaults.sweep_batch_size),
            sweeper_enabled=_env("SWEEPER_ENABLED", "true").lower() != "false",
            cors_origins=_origins(_env("CORS_ORIGINS")) or defaults.cors_origins,
            api_key=_env("API_KEY") or None,
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
        )
