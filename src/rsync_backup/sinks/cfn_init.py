# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/sinks/cfn_init.py

from __future__ import annotations

import base64
from typing import Any, Dict

import yaml

from ..compiler.plan import Action, BootstrapPlan, WriteFile

INIT_KEY = "AWS::CloudFormation::Init"


def _file_entry(action: WriteFile) -> Dict[str, Any]:
    try:
        entry: Dict[str, Any] = {"content": action.content.decode("utf-8")}
    except UnicodeDecodeError:
        entry = {"content": base64.b64encode(action.content).decode("ascii"), "encoding": "base64"}
    if action.mode is not None:
        entry["mode"] = f"{action.mode:06o}"
    entry["owner"] = "root"
    entry["group"] = "root"
    return entry


def config_name(index: int, action: Action) -> str:
    suffix = f"-{action.module}" if action.module else ""
    return f"{index:03d}-{action.step}{suffix}"


class CfnInitSink:
    """
    Renders the plan as CloudFormation init metadata.

    cfn-init runs a config's sections in a fixed order of its own
    (packages, files, commands, ...), so every action gets a config of
    its own and the "default" config set lists them in plan order.
    """

    name = "cfn-init"

    def document(self, plan: BootstrapPlan) -> Dict[str, Any]:
        configs: Dict[str, Any] = {}
        for i, a in enumerate(plan.actions):
            if isinstance(a, WriteFile):
                configs[config_name(i, a)] = {"files": {a.path: _file_entry(a)}}
            else:
                configs[config_name(i, a)] = {"commands": {f"{i:03d}": {"command": a.shell()}}}

        init: Dict[str, Any] = {"configSets": {"default": list(configs)}}
        init.update(configs)
        return {INIT_KEY: init}

    def render(self, plan: BootstrapPlan) -> str:
        return yaml.safe_dump(self.document(plan), sort_keys=False, default_flow_style=False, width=4096)
