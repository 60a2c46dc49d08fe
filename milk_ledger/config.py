"""Application configuration read from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
]


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path
    allowed_origins: list[str]

    @property
    def entries_path(self) -> Path:
        return self.data_dir / "entries.json"

    @property
    def machines_path(self) -> Path:
        return self.data_dir / "machines.json"

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def allow_all_origins(self) -> bool:
        return "*" in self.allowed_origins


def load_config() -> AppConfig:
    """Build config from MILK_LEDGER_DATA_DIR and ALLOWED_ORIGINS."""
    data_dir = Path(os.environ.get("MILK_LEDGER_DATA_DIR", "data"))

    # ALLOWED_ORIGINS="*" allows any origin
    origins_env = os.environ.get("ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    if "*" in origins:
        origins = ["*"]
    elif not origins:
        origins = list(DEFAULT_ALLOWED_ORIGINS)

    return AppConfig(data_dir=data_dir, allowed_origins=origins)
