# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/sinks/interface.py

"""Protocol shared by the user-data and cfn-init plan sinks."""

from __future__ import annotations
from typing import Protocol
from ..compiler.plan import BootstrapPlan

class PlanSink(Protocol):
    """
    Contract for turning a compiled plan into what the machine runs at
    first boot. Implementations must keep the action order and render
    identical plans to identical text.
    """

    name: str

    def render(self, plan: BootstrapPlan) -> str:
        ...
