from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
LOG_FILE_NAME = "nursery_erp.log"
ENV_DATA_DIR = "NURSERY_ERP_DATA_DIR"
ENV_BACKEND = "NURSERY_ERP_BACKEND"

BACKEND_SQLITE = "sqlite"
BACKEND_DEMO = "demo"

# Low-stock thresholds: the dashboard/monitor flags plants under 20,
# the inventory screen flags consumables under 10.
PLANT_LOW_STOCK_THRESHOLD = 20
CONSUMABLE_LOW_STOCK_THRESHOLD = 10
MONITOR_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    backend: str = BACKEND_SQLITE
    currency: str = "KES"
    plant_low_stock_threshold: int = PLANT_LOW_STOCK_THRESHOLD
    consumable_low_stock_threshold: int = CONSUMABLE_LOW_STOCK_THRESHOLD
    monitor_interval_seconds: int = MONITOR_INTERVAL_SECONDS
    store_retries: int = 2

    @property
    def demo_mode(self) -> bool:
        return self.backend == BACKEND_DEMO


def _default_data_dir() -> Path:
    return Path.home() / ".nursery_erp"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def _int_option(persisted: Mapping[str, Any], key: str, default: int) -> int:
    try:
        return int(persisted.get(key, default))
    except (TypeError, ValueError):
        return default


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = _load_persisted_settings(data_dir)
    payload["data_dir"] = str(data_dir)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state["nursery_erp_data_dir"] = str(data_dir)


def load_settings(
    data_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    # Priority order:
    # 1) Explicit data_dir argument (session state when called from a page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    env = os.environ if environ is None else environ
    if data_dir is not None:
        resolved = Path(data_dir).expanduser().resolve()
    elif env.get(ENV_DATA_DIR):
        resolved = Path(env[ENV_DATA_DIR]).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        resolved = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    resolved.mkdir(parents=True, exist_ok=True)
    persisted = _load_persisted_settings(resolved)

    backend = str(env.get(ENV_BACKEND) or persisted.get("backend") or BACKEND_SQLITE).strip().lower()
    if backend != BACKEND_DEMO:
        backend = BACKEND_SQLITE

    return Settings(
        data_dir=resolved,
        db_path=resolved / "nursery.db",
        backend=backend,
        currency=str(persisted.get("currency", "KES")),
        plant_low_stock_threshold=_int_option(persisted, "plant_low_stock_threshold", PLANT_LOW_STOCK_THRESHOLD),
        consumable_low_stock_threshold=_int_option(
            persisted, "consumable_low_stock_threshold", CONSUMABLE_LOW_STOCK_THRESHOLD
        ),
        monitor_interval_seconds=_int_option(persisted, "monitor_interval_seconds", MONITOR_INTERVAL_SECONDS),
        store_retries=_int_option(persisted, "store_retries", 2),
    )


@st.cache_resource
def get_settings() -> Settings:
    session_dir = st.session_state.get("nursery_erp_data_dir")
    settings = load_settings(Path(session_dir) if session_dir else None)
    configure_logging(settings)
    return settings


def configure_logging(settings: Optional[Settings] = None, level: int = logging.INFO) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings is not None:
        handlers.append(logging.FileHandler(settings.data_dir / LOG_FILE_NAME, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
