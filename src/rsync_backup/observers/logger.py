# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/observers/logger.py

"""Writes compile events into the run log as one readable line each."""

from __future__ import annotations
import logging
from .events import BaseEvent, PlanComputed, PlanFailed, PlanRendered


def _describe(event: BaseEvent) -> str:
    if isinstance(event, PlanComputed):
        pairs = ", ".join(f"{m}->{d}" for m, d in zip(event.modules, event.devices))
        default = " (default module)" if event.synthetic else ""
        return f"{len(event.modules)} module(s){default} [{pairs}], {event.actions} action(s)"
    if isinstance(event, PlanFailed):
        return f"rule={event.rule or '-'}: {event.error}"
    if isinstance(event, PlanRendered):
        return f"{event.size_bytes} bytes to {event.path or 'stdout'}"
    d = event.dict()
    return ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id", "sink", "source"))


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        etype = event.__class__.__name__
        level = logging.ERROR if isinstance(event, PlanFailed) else logging.INFO
        self.logger.log(level, f"[EVENT] {etype} ({event.sink}): {_describe(event)}")
