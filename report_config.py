# report_config.py
"""
Configuration for the fleet report service.

Resolution order (later wins):
    DEFAULTS  ->  <ROOT>/report_config.json (known keys only)  ->  FLEET_REPORTS_* env vars

ROOT prefers FLEET_REPORTS_ROOT > this file's parent > CWD.

API
    from report_config import ROOT, DEFAULTS, load_config, configure_logging
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import json
import logging
import os

from pdf_composer import INSTITUTION, SYSTEM_NAME

logger = logging.getLogger("FleetReports.Config")


def _resolve_root() -> Path:
    v = os.environ.get("FLEET_REPORTS_ROOT", "").strip()
    if v:
        p = Path(v).resolve()
        if p.exists():
            return p
    p = Path(__file__).resolve().parent
    return p if p.exists() else Path.cwd().resolve()


ROOT = _resolve_root()

DEFAULTS: Dict[str, Any] = {
    "data_dir": "data",          # <kind>.json record files, relative to ROOT
    "out_dir": "reports",        # CLI output, relative to ROOT
    "chunk_size": 64 * 1024,     # streaming chunk size in bytes
    "institution": INSTITUTION,
    "system_name": SYSTEM_NAME,
    "log_level": "INFO",
    "timezone": "America/La_Paz",  # wall time for offset-aware record timestamps
    "cors_origins": ["*"],
    "budgets": {},               # overrides for report_limits.DEFAULTS
}

# env var -> (key, parser)
_ENV = {
    "FLEET_REPORTS_DATA_DIR": ("data_dir", str),
    "FLEET_REPORTS_OUT_DIR": ("out_dir", str),
    "FLEET_REPORTS_CHUNK_SIZE": ("chunk_size", int),
    "FLEET_REPORTS_LOG_LEVEL": ("log_level", str),
    "FLEET_REPORTS_TIMEZONE": ("timezone", str),
    "FLEET_REPORTS_CORS_ORIGINS": ("cors_origins", lambda s: [o.strip() for o in s.split(",") if o.strip()]),
}


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


def resolve_path(value: str, root: Path = ROOT) -> Path:
    p = Path(value)
    return p if p.is_absolute() else (root / p).resolve()


def load_config(path: Optional[str | os.PathLike] = None, env: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    cfg = dict(DEFAULTS)
    file_path = Path(path) if path else ROOT / "report_config.json"
    overrides = _read_json(file_path)
    if overrides:
        logger.debug("Config overrides from %s: %s", file_path, sorted(overrides))
    cfg.update({k: v for k, v in overrides.items() if k in cfg})

    env = os.environ if env is None else env
    for name, (key, parse) in _ENV.items():
        raw = (env.get(name) or "").strip()
        if raw:
            try:
                cfg[key] = parse(raw)
            except ValueError as e:
                raise ValueError(f"{name}={raw!r}: {e}") from e

    cfg["data_dir"] = resolve_path(str(cfg["data_dir"]))
    cfg["out_dir"] = resolve_path(str(cfg["out_dir"]))
    return cfg


def configure_logging(level: str | int = "INFO") -> None:
    logging.basicConfig(
        level=level if isinstance(level, int) else getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
