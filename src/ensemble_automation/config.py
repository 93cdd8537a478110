from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .runner import DEFAULT_CONCURRENCY

DEFAULT_CONFIG = Path("/etc/ensemble/main.conf")
DEFAULT_CLUSTER = Path("/etc/ensemble/cluster.toml")
DEFAULT_WORKING_DIR = Path("/tmp/ensemble")


@dataclass
class EnsembleConfig:
    cluster: Path = DEFAULT_CLUSTER
    state_file: Optional[Path] = None
    working_dir: Path = DEFAULT_WORKING_DIR
    concurrency: int = DEFAULT_CONCURRENCY
    aws_region: Optional[str] = None
    aws_profile: Optional[str] = None
    plugin_dirs: list[Path] = field(default_factory=list)
    plugin_modules: list[str] = field(default_factory=list)


def _as_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    raise ValueError(f"{key} must be a string or a list of strings")


def load_config(path: Path) -> EnsembleConfig:
    if not path.exists():
        return EnsembleConfig()
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{path}: {exc}") from None
    defaults = data.get("defaults", {})
    state_file = defaults.get("state_file")
    aws_region = defaults.get("aws_region")
    aws_profile = defaults.get("aws_profile")
    concurrency = defaults.get("concurrency", DEFAULT_CONCURRENCY)
    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError(f"{path}: concurrency must be a positive integer")
    return EnsembleConfig(
        cluster=Path(defaults.get("cluster", DEFAULT_CLUSTER)),
        state_file=Path(state_file) if state_file else None,
        working_dir=Path(defaults.get("working_dir", DEFAULT_WORKING_DIR)),
        concurrency=concurrency,
        aws_region=str(aws_region) if aws_region else None,
        aws_profile=str(aws_profile) if aws_profile else None,
        plugin_dirs=[Path(p) for p in _as_list(defaults.get("plugin_dirs"), "plugin_dirs")],
        plugin_modules=_as_list(defaults.get("plugin_modules"), "plugin_modules"),
    )
