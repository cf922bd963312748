# utils/config.py
import sys
from pathlib import Path

import yaml

DEFAULTS = {
    "encode": {
        "ratio_pct": 0.15,
        "fill": 255,
        "color_mode": "greyscale",
        "invert": False,
        "resize": "0x0",
        "output": "output.png",
        "spool_max_bytes": "8MB",
        "progress": False,
    },
}


class ConfigError(Exception):
    pass


def load_config(cfg_path: str = "config.yaml", required: bool = False) -> dict:
    """
    Load YAML config merged over DEFAULTS.

    A missing file falls back to the defaults unless `required` is set;
    a file that exists but does not parse is always a ConfigError.
    """
    p = Path(cfg_path)
    if not p.exists():
        if required:
            raise ConfigError(f"config file not found: {cfg_path}")
        return {k: dict(v) for k, v in DEFAULTS.items()}
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{cfg_path}: failed to parse: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{cfg_path}: top level must be a mapping")

    cfg = {k: dict(v) for k, v in DEFAULTS.items()}
    for section, values in raw.items():
        if isinstance(values, dict) and isinstance(cfg.get(section), dict):
            unknown = sorted(set(values) - set(cfg[section]))
            if unknown:
                print(f"[config] WARNING: {cfg_path}: ignoring unknown {section} keys: {unknown}",
                      file=sys.stderr)
            cfg[section].update({k: v for k, v in values.items() if k in cfg[section]})
        else:
            cfg[section] = values
    return cfg


def cfg_get(cfg: dict, key: str, default=None):
    """Dot-path getter: cfg_get(cfg, 'encode.fill', 255)"""
    cur = cfg
    for part in key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur
