# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/compiler/validator.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from ..config.models import (
    DEFAULT_MAX_SNAPSHOTS,
    DEFAULT_MODULE_NAME,
    DEFAULT_MODULE_SIZE,
    ModuleSpec,
)
from .errors import (
    DuplicateModuleName,
    InvalidIdentifier,
    InvalidMaxSnapshots,
    InvalidModuleSize,
    InvalidSshKey,
)

# These values end up inside a forced command and in shell-sourced files.
NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
FILE_SYSTEM_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
MOUNT_OPTIONS_RE = re.compile(r"^[A-Za-z0-9_.,=:/+-]*$")

DEFAULT_MODULE = ModuleSpec(name=DEFAULT_MODULE_NAME, ssh_key="", size=DEFAULT_MODULE_SIZE)


@dataclass(frozen=True)
class ValidatedModules:
    modules: Tuple[ModuleSpec, ...]
    max_snapshots: int
    synthetic: bool = False   # True -> modules is the single default module


def _is_whole(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return float(value).is_integer()


def check_size(index: int, m: ModuleSpec) -> int:
    if not _is_whole(m.size) or m.size <= 0:
        raise InvalidModuleSize(
            f"size must be a positive integer, got {m.size!r}",
            index=index,
            name=m.name,
        )
    return int(m.size)


def check_name(index: int, name: str) -> None:
    if not NAME_RE.match(name or ""):
        raise InvalidIdentifier(
            f"name {name!r} must match {NAME_RE.pattern}",
            index=index,
            name=name,
        )


def check_file_system(value: Optional[str], *, index: Optional[int] = None, name: Optional[str] = None) -> None:
    if value and not FILE_SYSTEM_RE.match(value):
        raise InvalidIdentifier(
            f"fileSystem {value!r} must match {FILE_SYSTEM_RE.pattern}",
            field="fileSystem",
            index=index,
            name=name,
        )


def check_mount_options(value: Optional[str], *, index: Optional[int] = None, name: Optional[str] = None) -> None:
    if value and not MOUNT_OPTIONS_RE.match(value):
        raise InvalidIdentifier(
            f"mountOptions {value!r} must match {MOUNT_OPTIONS_RE.pattern}",
            field="mountOptions",
            index=index,
            name=name,
        )


def check_ssh_key(index: int, m: ModuleSpec) -> None:
    key = m.ssh_key.strip()
    if not key:
        raise InvalidSshKey("sshKey is empty", index=index, name=m.name)
    if "\n" in key or "\r" in key:
        raise InvalidSshKey("sshKey must be a single line", index=index, name=m.name)


def check_max_snapshots(value) -> int:
    if value is None:
        return DEFAULT_MAX_SNAPSHOTS
    if not _is_whole(value) or value < 0:
        raise InvalidMaxSnapshots(f"maxSnapshots must be a non-negative integer, got {value!r}")
    return int(value)


def validate_modules(
    modules: Optional[Sequence[ModuleSpec]],
    max_snapshots=None,
) -> ValidatedModules:
    """
    Validate the declared modules and the plan-level snapshot count.

    Fails fast, in declaration order, on the first broken rule. An absent
    or empty module list yields the synthetic default module.
    """
    snapshots = check_max_snapshots(max_snapshots)

    if not modules:
        return ValidatedModules(modules=(DEFAULT_MODULE,), max_snapshots=snapshots, synthetic=True)

    seen: Dict[str, int] = {}
    for i, m in enumerate(modules):
        check_name(i, m.name)
        if m.name in seen:
            raise DuplicateModuleName(
                f"name already used by module #{seen[m.name]}",
                index=i,
                name=m.name,
            )
        seen[m.name] = i
        check_size(i, m)
        check_ssh_key(i, m)
        check_file_system(m.file_system, index=i, name=m.name)
        check_mount_options(m.mount_options, index=i, name=m.name)

    return ValidatedModules(modules=tuple(modules), max_snapshots=snapshots)
