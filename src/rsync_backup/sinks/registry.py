# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/sinks/registry.py

from __future__ import annotations

from typing import Callable, Dict

from .cfn_init import CfnInitSink
from .interface import PlanSink
from .userdata import UserDataSink

SINKS: Dict[str, Callable[[], PlanSink]] = {
    UserDataSink.name: UserDataSink,
    CfnInitSink.name: CfnInitSink,
}


def get_sink(name: str) -> PlanSink:
    try:
        factory = SINKS[name]
    except KeyError:
        raise ValueError(
            f"Unknown plan sink: {name}\n"
            f"Valid sinks: {', '.join(sorted(SINKS))}"
        ) from None
    return factory()
