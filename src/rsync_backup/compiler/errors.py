# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/compiler/errors.py

from __future__ import annotations

from typing import Optional


class BackupCompileError(ValueError):
    """
    Base class for every compile-time failure.

    Carries the offending module index/name (when a module is at fault)
    and a short rule identifier so callers can report both.
    """

    rule = "invalid"

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        name: Optional[str] = None,
    ):
        self.index = index
        self.name = name
        super().__init__(self._prefix() + message)

    def _prefix(self) -> str:
        if self.index is None and self.name is None:
            return ""
        if self.name is None:
            return f"module #{self.index}: "
        if self.index is None:
            return f"module '{self.name}': "
        return f"module #{self.index} ('{self.name}'): "


class InvalidModuleSize(BackupCompileError):
    """Raised when a module size is not a positive whole number of GB."""

    rule = "module-size"


class InvalidMaxSnapshots(BackupCompileError):
    """Raised when maxSnapshots is negative or not integral."""

    rule = "max-snapshots"


class DuplicateModuleName(BackupCompileError):
    rule = "duplicate-name"


class DeviceSpaceExhausted(BackupCompileError):
    """Raised when device letters run past 'z'."""

    rule = "device-space"


class InvalidIdentifier(BackupCompileError):
    """Raised when a name or option contains characters outside its safe set."""

    rule = "identifier"

    def __init__(self, message: str, *, field: str = "name", **kw):
        self.field = field
        super().__init__(message, **kw)


class InvalidSshKey(BackupCompileError):
    rule = "ssh-key"


class PlanOrderError(BackupCompileError):
    """Raised when an assembled plan breaks its ordering invariants."""

    rule = "plan-order"
