# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol, runtime_checkable
from .events import BaseEvent

@runtime_checkable
class Observer(Protocol):
    """Anything that wants compile events: console, log file, JSONL trail, tests."""

    def notify(self, event: BaseEvent) -> None: ...
