# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/compiler/render.py

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config.models import ModuleSpec


@dataclass(frozen=True)
class RenderedConfig:
    module: str
    path: str
    content: bytes


def config_path(directory: str, module: str) -> str:
    return posixpath.join(directory, f"rsyncd.{module}.conf")


def override_lines(m: ModuleSpec) -> List[str]:
    """Per-module FILE_SYSTEM / MOUNT_OPTS lines; empty when nothing is overridden."""
    lines = []
    if m.file_system is not None:
        lines.append(f"FILE_SYSTEM={m.file_system}")
    if m.mount_options is not None:
        lines.append(f'MOUNT_OPTS="{m.mount_options}"')
    return lines


def render_config(
    template: bytes,
    module: ModuleSpec,
    placeholder: str = "@host@",
    directory: str = "/srv/rsync-backup",
) -> RenderedConfig:
    body = template.replace(placeholder.encode(), module.name.encode())
    extra = override_lines(module)
    if extra:
        if body and not body.endswith(b"\n"):
            body += b"\n"
        body += "".join(line + "\n" for line in extra).encode()
    return RenderedConfig(module=module.name, path=config_path(directory, module.name), content=body)


def render_configs(
    template: Optional[bytes],
    modules: Tuple[ModuleSpec, ...],
    placeholder: str = "@host@",
    directory: str = "/srv/rsync-backup",
) -> Tuple[RenderedConfig, ...]:
    # No template bytes: the plan copies and patches the template on the machine.
    if template is None:
        return ()
    return tuple(render_config(template, m, placeholder, directory) for m in modules)
