# finance_tracker/config.py
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Dict

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG: Dict[str, object] = {
    "db_path": "finance_tracker.db",
    "host": "127.0.0.1",
    "port": 3001,
    "cors_origins": ["http://localhost:3000"],
    "session_ttl_days": 7,
    "bcrypt_rounds": 10,
    "page_size": 20,
    "max_page_size": 100,
    "output_dir": "./data",
    "output_modules": {
        "csv": "finance_tracker.outputs.csv_output.CSVOutput",
        "json": "finance_tracker.outputs.json_output.JSONOutput",
    },
}

# Environment variable -> (config key, converter)
_ENV_OVERRIDES = {
    "FINANCE_TRACKER_DB": ("db_path", str),
    "HOST": ("host", str),
    "PORT": ("port", int),
}


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def _apply_env(config: Dict[str, object]) -> Dict[str, object]:
    for var, (key, convert) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            config[key] = convert(value)
    return config


def load_config(path: str | Path | None = None, env_file: str | Path | None = None) -> Dict[str, object]:
    """Load *path* (YAML) over the defaults, then apply environment overrides.

    A missing file is not an error; the defaults are used instead.
    """
    if env_file:
        load_dotenv(env_file, override=False)

    data: Dict[str, object] = {}
    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
    return _apply_env(_merge_defaults(data, DEFAULT_CONFIG))
