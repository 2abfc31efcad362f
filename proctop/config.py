"""Configuration loading for proctop.

Display defaults live in ``DEFAULT_CONFIG``. A TOML file is only read when
one is passed explicitly with ``--config``; proctop never looks for a file
on its own and never writes one.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path
from typing import Any, NoReturn

DEFAULT_CONFIG: dict[str, Any] = {
    "refresh_interval": 2,
    "sort": "cpu",
    "thresholds": {
        "cpu_percent": {"warning": 80.0, "critical": 95.0},
        "ram_percent": {"warning": 85.0, "critical": 95.0},
        "process_cpu": {"warning": 20.0, "critical": 50.0},
    },
}


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _invalid(key: str, path: Path) -> NoReturn:
    print(f"proctop: invalid value for {key} in {path}", file=sys.stderr)
    raise SystemExit(1)


def _check_values(config: dict[str, Any], path: Path) -> None:
    """Reject values of the wrong type before they reach the dashboard."""
    interval = config.get("refresh_interval")
    if not isinstance(interval, int) or isinstance(interval, bool):
        _invalid("refresh_interval", path)
    if not isinstance(config.get("sort"), str):
        _invalid("sort", path)

    thresholds = config.get("thresholds")
    if not isinstance(thresholds, dict):
        _invalid("thresholds", path)
    for metric, levels in thresholds.items():
        if not isinstance(levels, dict):
            _invalid(f"thresholds.{metric}", path)
        for level in ("warning", "critical"):
            if level in levels and not _is_number(levels[level]):
                _invalid(f"thresholds.{metric}.{level}", path)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging a user TOML file over the defaults.

    Args:
        path: Config file given with --config. None means defaults only.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If the path doesn't exist, can't be parsed, or holds a
            value of the wrong type.
    """
    if path is None:
        return dict(DEFAULT_CONFIG)

    if not path.is_file():
        print(f"proctop: config file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        user_config = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        print(f"proctop: invalid TOML in {path}: {e}", file=sys.stderr)
        raise SystemExit(1) from e
    config = _deep_merge(DEFAULT_CONFIG, user_config)
    _check_values(config, path)
    return config


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# proctop configuration",
        "# Load it with: proctop --config <path>",
        "",
        f"refresh_interval = {DEFAULT_CONFIG['refresh_interval']}",
        f'sort = "{DEFAULT_CONFIG["sort"]}"',
        "",
    ]

    for metric, levels in DEFAULT_CONFIG["thresholds"].items():
        lines.append(f"[thresholds.{metric}]")
        lines.append(f"warning = {levels['warning']}")
        lines.append(f"critical = {levels['critical']}")
        lines.append("")

    return "\n".join(lines) + "\n"
