# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/compiler/devices.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence, Tuple

from ..config.models import ModuleSpec
from .errors import DeviceSpaceExhausted, InvalidIdentifier

LAST_LETTER = "z"
DEVICE_PREFIX_RE = re.compile(r"^/dev/[a-z]+$")


@dataclass(frozen=True)
class DeviceAssignment:
    module: str
    letter: str
    prefix: str = "/dev/sd"

    @property
    def path(self) -> str:
        return f"{self.prefix}{self.letter}"


def check_base(base: str) -> None:
    if len(base) != 1 or not ("a" <= base <= LAST_LETTER):
        raise InvalidIdentifier(f"device base {base!r} must be a single letter a-z", field="deviceBase")


def check_prefix(prefix: str) -> None:
    if not DEVICE_PREFIX_RE.match(prefix):
        raise InvalidIdentifier(f"device prefix {prefix!r} must match {DEVICE_PREFIX_RE.pattern}", field="devicePrefix")


def allocate_devices(
    modules: Sequence[ModuleSpec],
    base: str = "f",
    prefix: str = "/dev/sd",
) -> Tuple[DeviceAssignment, ...]:
    """
    Give each module, in declaration order, the letter ``base + index``.

    The root volume owns the letters before ``base``; the caller picks it.
    Running past 'z' is an error, letters never wrap.
    """
    check_base(base)
    check_prefix(prefix)

    assignments = []
    for i, m in enumerate(modules):
        code = ord(base) + i
        if code > ord(LAST_LETTER):
            raise DeviceSpaceExhausted(
                f"no device letter left after {prefix}{LAST_LETTER} "
                f"(base {base!r}, {len(modules)} modules)",
                index=i,
                name=m.name,
            )
        assignments.append(DeviceAssignment(module=m.name, letter=chr(code), prefix=prefix))
    return tuple(assignments)
