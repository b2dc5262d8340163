# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import re
from typing import Optional

from ..config.models import BackupConfig
from .access import build_access_entries
from .devices import allocate_devices
from .errors import BackupCompileError, InvalidIdentifier
from .plan import BootstrapPlan, assemble_plan
from .render import render_configs
from .validator import check_file_system, check_mount_options, validate_modules

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import PlanComputed, PlanFailed, new_ctx

log = logging.getLogger("rsync_backup")

BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


def _check_settings(cfg: BackupConfig) -> None:
    check_file_system(cfg.file_system)
    check_mount_options(cfg.mount_options)
    if not BUCKET_RE.match(cfg.logs_bucket):
        raise InvalidIdentifier(f"logsBucket {cfg.logs_bucket!r} is not a bucket name", field="logsBucket")
    if not cfg.layout.placeholder:
        raise InvalidIdentifier("placeholder must not be empty", field="placeholder")


def compile_plan(
    cfg: BackupConfig,
    template: Optional[bytes] = None,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> BootstrapPlan:
    """
    Compile the declared modules into a bootstrap plan.

    ``template`` is the rsyncd.conf template as shipped in the asset bundle;
    without it the plan patches the template on the machine instead.
    Emits PlanComputed / PlanFailed if an EventBus is provided. Nothing is
    returned on failure.
    """
    ctx = run_ctx or new_ctx(sink=cfg.sink)
    try:
        validated = validate_modules(cfg.modules, cfg.max_snapshots)
        _check_settings(cfg)

        assignments = allocate_devices(validated.modules, cfg.device_base, cfg.device_prefix)
        entries = build_access_entries(validated, assignments, cfg.layout.entry_point)
        configs = render_configs(template, validated.modules, cfg.layout.placeholder, cfg.layout.asset_dir)
        plan = assemble_plan(cfg, validated, assignments, entries, configs)

        log.debug(
            "compiled %d module(s) into %d action(s)%s",
            len(plan.modules),
            len(plan.actions),
            " (synthetic default module)" if plan.synthetic else "",
        )
        if bus:
            bus.emit(
                PlanComputed(
                    modules=plan.names(),
                    devices=[a.path for a in plan.assignments],
                    actions=len(plan.actions),
                    synthetic=plan.synthetic,
                    **ctx,
                )
            )
        return plan

    except BackupCompileError as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), rule=e.rule, **ctx))
        raise
