# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Set, Type

from pydantic import BaseModel

from .models import AssetSpec, BackupConfig, LayoutSpec, ModuleSpec

log = logging.getLogger("rsync_backup")

# nested sections whose keys are checked against their own model
_SECTIONS: Dict[str, Type[BaseModel]] = {
    "asset": AssetSpec,
    "layout": LayoutSpec,
}


def _field_keys(model: Type[BaseModel]) -> Set[str]:
    """Field names plus their camelCase aliases."""
    keys = set()
    for name, info in model.model_fields.items():
        keys.add(name)
        if info.alias:
            keys.add(info.alias)
    return keys


def _drop_unknown(data: dict, model: Type[BaseModel], where: str) -> dict:
    known = _field_keys(model)
    out = {}
    for key, value in data.items():
        if key not in known:
            log.warning("%s: unknown key '%s' ignored", where, key)
            continue
        out[key] = value
    return out


def _check_override_keys(override: dict, source: Path) -> dict:
    """
    Strip keys that BackupConfig would silently ignore, so a misspelled
    override (``logBucket``) shows up in the log instead of vanishing.
    """
    override = _drop_unknown(override, BackupConfig, str(source))
    for section, model in _SECTIONS.items():
        if isinstance(override.get(section), dict):
            override[section] = _drop_unknown(override[section], model, f"{source}: {section}")
    if isinstance(override.get("modules"), list):
        override["modules"] = [
            _drop_unknown(m, ModuleSpec, f"{source}: modules[{i}]") if isinstance(m, dict) else m
            for i, m in enumerate(override["modules"])
        ]
    return override


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        elif key == "modules" and isinstance(base.get(key), list) and isinstance(value, list):
            _merge_modules(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _merge_modules(base: list, override: list) -> None:
    """Merge module overrides into the declared modules by name; unmatched ones are appended."""
    by_name = {m.get("name"): m for m in base if isinstance(m, dict)}
    for m in override:
        target = by_name.get(m.get("name")) if isinstance(m, dict) else None
        if target is None:
            log.debug("override declares new module %r", m.get("name") if isinstance(m, dict) else m)
            base.append(m)
        else:
            _deep_merge(target, m)


def _find_overrides_file(config_path: Path) -> Path | None:
    """
    Locate overrides.yaml using this priority:

    1. RSYNC_BACKUP_OVERRIDES environment variable (explicit override)
    2. overrides.yaml in the same directory as the backup config
    """
    env = os.environ.get("RSYNC_BACKUP_OVERRIDES")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("RSYNC_BACKUP_OVERRIDES=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "overrides.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> BackupConfig:
    """
    Load and validate an rsync-backup YAML config.

    Values that should not live in the main file (SSH keys, bucket names
    from another stack) can be injected two ways:

    **overrides.yaml**
        A file whose structure mirrors the backup config, deep-merged into
        it before Pydantic validation. Discovery order:
          1. ``RSYNC_BACKUP_OVERRIDES`` env var -> explicit path
          2. ``overrides.yaml`` next to the config file

        Keys that are not BackupConfig (or asset / layout / module) fields
        are logged and dropped. Entries under ``modules`` are merged into
        the declared module with the same ``name``, so an override can
        carry just ``{name: db, sshKey: ...}``.

    **environment variables**
        ``${ENV_VAR}`` placeholders anywhere in either file, resolved by
        ``os.path.expandvars`` at load time.
    """
    path = Path(path)
    data = _load_yaml(path)

    overrides_path = _find_overrides_file(path)
    if overrides_path:
        log.debug("Merging overrides from %s", overrides_path)
        _deep_merge(data, _check_override_keys(_load_yaml(overrides_path), overrides_path))
    else:
        log.debug("No overrides.yaml found, using %s as is", path)

    return BackupConfig.model_validate(data)
