from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    data_root: Path
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Path | None = None
    cors_origins: tuple[str, ...] = ("*",)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    env_root = os.environ.get("SAHEL_DATA_ROOT")
    if env_root:
        root = Path(env_root).expanduser().resolve()
    else:
        root = Path.home() / ".sahel_atlas" / "Datasets_Hackathon"
    log_file = os.environ.get("SAHEL_LOG_FILE")
    origins = os.environ.get("SAHEL_CORS_ORIGINS")
    return Settings(
        data_root=root,
        log_level=os.environ.get("SAHEL_LOG_LEVEL", "INFO"),
        json_logs=_env_flag("SAHEL_JSON_LOGS"),
        log_file=Path(log_file).expanduser() if log_file else None,
        cors_origins=tuple(item.strip() for item in origins.split(",") if item.strip()) if origins else ("*",),
    )
