# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/sinks/userdata.py

from __future__ import annotations

import base64
import posixpath
import shlex
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..compiler.plan import Action, BootstrapPlan, WriteFile

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


def write_file_commands(action: WriteFile) -> List[str]:
    """Shell lines that recreate *action*'s bytes exactly, whatever they contain."""
    data = base64.b64encode(action.content).decode("ascii")
    path = shlex.quote(action.path)
    lines = [
        f"mkdir -p {shlex.quote(posixpath.dirname(action.path) or '/')}",
        f"printf '%s' {data} | base64 -d > {path}",
    ]
    if action.mode is not None:
        lines.append(f"chmod {action.mode:04o} {path}")
    return lines


def action_lines(action: Action) -> List[str]:
    if isinstance(action, WriteFile):
        return write_file_commands(action)
    return [action.shell()]


class UserDataSink:
    """Renders the plan as an inline bash user-data script."""

    name = "user-data"

    def __init__(self, templates_dir: Optional[Path] = None, template_name: str = "user-data.sh.j2"):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.template_name = template_name

    def render(self, plan: BootstrapPlan) -> str:
        steps = []
        for a in plan.actions:
            label = a.phase.value + (f" [{a.module}]" if a.module else "") + f": {a.step}"
            steps.append({"label": label, "lines": action_lines(a)})
        tmpl = self.env.get_template(self.template_name)
        return tmpl.render(modules=plan.names(), synthetic=plan.synthetic, steps=steps)
