# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/compiler/plan.py

from __future__ import annotations

import posixpath
import re
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..config.models import BackupConfig, ModuleSpec
from .access import AccessControlEntry, default_patch_script
from .devices import DeviceAssignment
from .errors import PlanOrderError
from .render import RenderedConfig, config_path, override_lines
from .validator import ValidatedModules


class Phase(str, Enum):
    INSTALL = "install"
    FETCH = "fetch"
    EXTRACT = "extract"
    MODULE = "module"
    ENVIRONMENT = "environment"
    CLEANUP = "cleanup"


PHASE_ORDER: Tuple[Phase, ...] = tuple(Phase)

# write config -> patch host placeholder -> append overrides -> authorize key
MODULE_STEPS: Tuple[str, ...] = ("write-config", "patch-placeholder", "append-override", "authorize")


# ---------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class WriteFile:
    path: str
    content: bytes
    mode: Optional[int] = None
    phase: Phase = Phase.MODULE
    module: Optional[str] = None
    step: str = "write-config"


@dataclass(frozen=True)
class RunCommand:
    argv: Tuple[str, ...]
    append_to: Optional[str] = None      # stdout appended to this file
    phase: Phase = Phase.MODULE
    module: Optional[str] = None
    step: str = ""

    def shell(self) -> str:
        cmd = shlex.join(self.argv)
        if self.append_to:
            cmd += " >> " + shlex.quote(self.append_to)
        return cmd


Action = Union[WriteFile, RunCommand]


@dataclass(frozen=True)
class BootstrapPlan:
    actions: Tuple[Action, ...]
    environment: Dict[str, str]
    modules: Tuple[ModuleSpec, ...]
    assignments: Tuple[DeviceAssignment, ...]
    entries: Tuple[AccessControlEntry, ...]
    configs: Tuple[RenderedConfig, ...] = ()
    synthetic: bool = False
    env_target: str = ""

    def actions_for(self, module: str) -> List[Action]:
        return [a for a in self.actions if a.module == module]

    def names(self) -> List[str]:
        return [m.name for m in self.modules]


def env_lines(environment: Dict[str, str]) -> List[str]:
    out = []
    for k, v in environment.items():
        # MOUNT_OPTS holds commas and may be empty; the script sources it quoted
        out.append(f'{k}="{v}"' if k == "MOUNT_OPTS" else f"{k}={v}")
    return out


def _sed_escape(text: str) -> str:
    return re.sub(r"([\\/.*\[\]^$&])", r"\\\1", text)


# ---------------------------------------------------------------------
# Ordering invariants
# ---------------------------------------------------------------------
def check_order(actions: Sequence[Action]) -> None:
    """Raise PlanOrderError unless *actions* is a valid total order."""
    if not actions:
        raise PlanOrderError("plan is empty")

    last_phase = 0
    for i, a in enumerate(actions):
        idx = PHASE_ORDER.index(a.phase)
        if idx < last_phase:
            raise PlanOrderError(
                f"action #{i} ({a.step}) in phase '{a.phase.value}' follows phase '{PHASE_ORDER[last_phase].value}'"
            )
        last_phase = idx

    cleanups = [a for a in actions if a.phase is Phase.CLEANUP]
    if len(cleanups) != 1 or actions[-1] is not cleanups[0]:
        raise PlanOrderError("exactly one cleanup action must close the plan")

    by_module: Dict[str, List[str]] = {}
    for a in actions:
        if a.phase is Phase.MODULE:
            by_module.setdefault(a.module or "", []).append(a.step)

    for name, steps in by_module.items():
        positions = [MODULE_STEPS.index(s) for s in steps]
        if positions != sorted(positions):
            raise PlanOrderError(f"steps out of order: {steps}", name=name)
        if steps[0] != "write-config" or steps.count("authorize") != 1:
            raise PlanOrderError(f"needs one config write first and one authorization, got {steps}", name=name)


# ---------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------
def _module_actions(
    cfg: BackupConfig,
    m: ModuleSpec,
    entry: AccessControlEntry,
    rendered: Optional[RenderedConfig],
) -> List[Action]:
    layout = cfg.layout
    conf = config_path(layout.asset_dir, m.name)
    template = posixpath.join(layout.asset_dir, layout.template_name)
    out: List[Action] = []

    if rendered is not None:
        out.append(WriteFile(path=rendered.path, content=rendered.content, mode=0o644, module=m.name))
    else:
        out.append(RunCommand(("cp", template, conf), module=m.name, step="write-config"))
        out.append(
            RunCommand(
                ("sed", "-i", f"s/{_sed_escape(layout.placeholder)}/{m.name}/g", conf),
                module=m.name,
                step="patch-placeholder",
            )
        )
        for line in override_lines(m):
            out.append(RunCommand(("echo", line), append_to=conf, module=m.name, step="append-override"))

    if entry.replaces_existing:
        out.append(
            RunCommand(
                ("sed", "-i", default_patch_script(entry), layout.authorized_keys),
                module=m.name,
                step="authorize",
            )
        )
    else:
        out.append(
            RunCommand(("echo", entry.render()), append_to=layout.authorized_keys, module=m.name, step="authorize")
        )
    return out


def assemble_plan(
    cfg: BackupConfig,
    validated: ValidatedModules,
    assignments: Sequence[DeviceAssignment],
    entries: Sequence[AccessControlEntry],
    configs: Sequence[RenderedConfig] = (),
) -> BootstrapPlan:
    """
    Merge packages, asset retrieval, per-module artifacts and environment
    settings into one ordered action list ending with template cleanup.
    """
    layout = cfg.layout
    local_asset = posixpath.join("/tmp", posixpath.basename(cfg.asset.key))
    template = posixpath.join(layout.asset_dir, layout.template_name)
    rendered = {c.module: c for c in configs}

    actions: List[Action] = [
        RunCommand(("apt-get", "update"), phase=Phase.INSTALL, step="apt-update"),
    ]
    if cfg.packages:
        actions.append(
            RunCommand(("apt-get", "install", "-y", *cfg.packages), phase=Phase.INSTALL, step="apt-install")
        )

    actions.append(
        RunCommand(
            ("aws", "s3", "cp", f"s3://{cfg.asset.bucket}/{cfg.asset.key}", local_asset),
            phase=Phase.FETCH,
            step="download-assets",
        )
    )

    actions += [
        RunCommand(("unzip", local_asset, "-d", layout.asset_dir), phase=Phase.EXTRACT, step="unzip"),
        RunCommand(("rm", local_asset), phase=Phase.EXTRACT, step="remove-archive"),
        RunCommand(
            ("mv", posixpath.join(layout.asset_dir, layout.script_name), layout.executable),
            phase=Phase.EXTRACT,
            step="install-script",
        ),
        RunCommand(("chmod", "0755", layout.executable), phase=Phase.EXTRACT, step="install-script"),
    ]

    for m, entry in zip(validated.modules, entries):
        actions += _module_actions(cfg, m, entry, rendered.get(m.name))

    environment = {
        "MAX_SNAPSHOTS": str(validated.max_snapshots),
        "S3_LOGS_BUCKET": cfg.logs_bucket,
        "FILE_SYSTEM": cfg.file_system,
        "MOUNT_OPTS": cfg.mount_options,
    }
    env_target = layout.executable if cfg.env_target == "executable" else layout.env_file
    for line in env_lines(environment):
        actions.append(RunCommand(("echo", line), append_to=env_target, phase=Phase.ENVIRONMENT, step="env"))

    actions.append(RunCommand(("rm", template), phase=Phase.CLEANUP, step="cleanup"))

    check_order(actions)

    return BootstrapPlan(
        actions=tuple(actions),
        environment=environment,
        modules=validated.modules,
        assignments=tuple(assignments),
        entries=tuple(entries),
        configs=tuple(configs),
        synthetic=validated.synthetic,
        env_target=env_target,
    )
