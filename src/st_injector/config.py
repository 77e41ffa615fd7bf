from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

# YAML config example:
# paths:
#   baserom: baserom.us.z64
#   rom: build/us/sm64.us.z64
#   input: basest.us.st
#   output: build/us/sm64.us.st
#   hooks: sm64_hooks.us.txt
#   map: build/us/sm64.us.map


@dataclass(frozen=True)
class PatchPaths:
    baserom: str = "baserom.us.z64"
    rom: str = "build/us/sm64.us.z64"
    input: str = "basest.us.st"
    output: str = "build/us/sm64.us.st"
    hooks: str = "sm64_hooks.us.txt"
    map: str = "build/us/sm64.us.map"


PATH_KEYS = tuple(f.name for f in fields(PatchPaths))


def load_config(path: str | Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file {path} could not be opened")
    except yaml.YAMLError as e:
        raise ConfigError(f"config file {path} is not valid YAML: {e}")

    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    # Accept both a top-level `paths:` section and bare keys
    section = doc["paths"] if "paths" in doc else doc
    if not isinstance(section, dict):
        raise ConfigError(f"'paths' in config file {path} must be a mapping")

    unknown = sorted(set(map(str, section)) - set(PATH_KEYS))
    if unknown:
        raise ConfigError(f"unknown key(s) in config file {path}: {', '.join(unknown)}")
    for key, value in section.items():
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' in config file {path} must be a path string, got {value!r}")
    return dict(section)


def resolve_paths(config: dict[str, Any] | None = None, **overrides: str | None) -> PatchPaths:
    """Defaults, then config values, then explicit command-line values."""
    paths = PatchPaths()
    if config:
        paths = replace(paths, **config)
    explicit = {k: v for k, v in overrides.items() if v is not None}
    unknown = set(explicit) - set(PATH_KEYS)
    if unknown:
        raise ConfigError(f"unknown path option(s): {', '.join(sorted(unknown))}")
    return replace(paths, **explicit)


def require_files(*paths: str | Path) -> None:
    for p in paths:
        if not Path(p).is_file():
            raise ConfigError(f"file {p} could not be opened")
