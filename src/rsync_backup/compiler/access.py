# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/compiler/access.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .devices import DeviceAssignment
from .errors import InvalidIdentifier
from .validator import NAME_RE, ValidatedModules

FORCED_OPTIONS: Tuple[str, ...] = (
    "no-port-forwarding",
    "no-agent-forwarding",
    "no-X11-forwarding",
)
ENTRY_POINT_RE = re.compile(r"^[A-Za-z0-9_./-]+$")
DEVICE_RE = re.compile(r"^/dev/[a-z]+$")
KEY_TYPE_PREFIXES = ("ssh-", "ecdsa-", "sk-ssh-", "sk-ecdsa-")


@dataclass(frozen=True)
class AccessControlEntry:
    """
    One forced-command authorization for one module.

    ``ssh_key`` is None for the synthetic default module: its key is the
    instance key pair already present in authorized_keys, whose command
    clause gets replaced instead of a new line being appended.
    """

    module: str
    size: int
    device: str
    entry_point: str = "rsync-backup"
    ssh_key: Optional[str] = None

    def __post_init__(self):
        if not ENTRY_POINT_RE.match(self.entry_point):
            raise InvalidIdentifier(f"entry point {self.entry_point!r} is not a safe command name", field="entryPoint")
        if not NAME_RE.match(self.module):
            raise InvalidIdentifier(f"name {self.module!r} must match {NAME_RE.pattern}", name=self.module)
        if not DEVICE_RE.match(self.device):
            raise InvalidIdentifier(f"device {self.device!r} is not a device path", field="device", name=self.module)
        if isinstance(self.size, bool) or not isinstance(self.size, int) or self.size <= 0:
            raise InvalidIdentifier(f"size {self.size!r} is not a positive integer", field="size", name=self.module)

    @property
    def command(self) -> str:
        return f"{self.entry_point} {self.module} {self.size} {self.device}"

    @property
    def clause(self) -> str:
        return f'command="{self.command}"'

    @property
    def replaces_existing(self) -> bool:
        return self.ssh_key is None

    def render(self) -> str:
        if self.ssh_key is None:
            raise ValueError(f"entry for '{self.module}' has no key; it patches an existing line")
        return ",".join(FORCED_OPTIONS + (self.clause,)) + " " + self.ssh_key.strip()


def build_access_entries(
    validated: ValidatedModules,
    assignments: Sequence[DeviceAssignment],
    entry_point: str = "rsync-backup",
) -> Tuple[AccessControlEntry, ...]:
    entries = []
    for m, dev in zip(validated.modules, assignments):
        entries.append(
            AccessControlEntry(
                module=m.name,
                size=int(m.size),
                device=dev.path,
                entry_point=entry_point,
                ssh_key=None if validated.synthetic else m.ssh_key,
            )
        )
    return tuple(entries)


def default_patch_script(entry: AccessControlEntry) -> str:
    """
    sed script swapping the command="..." clause of pre-existing keys for
    the default entry's clause.

    The quoted value is matched escape-aware (the stock cloud key carries
    \\"ubuntu\\" inside it) and lines already forced to the entry point are
    left alone, so a re-run over a provisioned file does not rewrite them.

    ``#`` delimits the substitution: with ``|`` as delimiter GNU sed reads
    ``\\|`` as a literal bar and the alternation never matches.
    """
    ep = entry.entry_point.replace(".", r"\.")
    return (
        rf'\%command="{ep} %!'
        rf's#command="\([^"\\]\|\\.\)*" #{entry.clause} #'
    )


# ---------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------
@dataclass
class ParsedEntry:
    options: List[str] = field(default_factory=list)
    key: str = ""

    def values(self, name: str) -> List[str]:
        prefix = name + "="
        out = []
        for opt in self.options:
            if opt.startswith(prefix):
                v = opt[len(prefix):]
                if len(v) >= 2 and v[0] == '"' and v[-1] == '"':
                    v = v[1:-1].replace('\\"', '"')
                out.append(v)
        return out


def parse_entry(line: str) -> ParsedEntry:
    """Split an authorized_keys line into its options and the key part."""
    line = line.strip()
    if line.startswith(KEY_TYPE_PREFIXES):
        return ParsedEntry(options=[], key=line)

    options: List[str] = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if in_quotes and ch == "\\" and i + 1 < len(line):
            current.append(line[i:i + 2])
            i += 2
            continue
        if ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes and ch == ",":
            options.append("".join(current))
            current = []
            i += 1
            continue
        elif not in_quotes and ch in " \t":
            break
        current.append(ch)
        i += 1
    options.append("".join(current))
    return ParsedEntry(options=options, key=line[i:].strip())


def verify_entry(line: str, entry_point: str = "rsync-backup") -> List[str]:
    """
    Return the problems that stop *line* from granting exactly one
    non-interactive command bound to one module. Empty list -> ok.
    """
    parsed = parse_entry(line)
    problems = []

    missing = [o for o in FORCED_OPTIONS if o not in parsed.options]
    if missing:
        problems.append("missing options: " + ",".join(missing))

    commands = parsed.values("command")
    if not commands:
        problems.append("no forced command")
    elif len(commands) > 1:
        problems.append(f"{len(commands)} command= clauses")
    else:
        pattern = re.compile(
            rf"^{re.escape(entry_point)} ({NAME_RE.pattern[1:-1]}) ([1-9][0-9]*) (/dev/[a-z]+)$"
        )
        if not pattern.match(commands[0]):
            problems.append(f"command {commands[0]!r} is not '{entry_point} <module> <size> <device>'")

    if not parsed.key.startswith(KEY_TYPE_PREFIXES):
        problems.append("no public key")

    return problems


@dataclass(frozen=True)
class AuditFinding:
    lineno: int
    line: str
    problems: Tuple[str, ...]


def audit(text: str, entry_point: str = "rsync-backup") -> List[AuditFinding]:
    findings = []
    for n, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        problems = verify_entry(line, entry_point)
        if problems:
            findings.append(AuditFinding(lineno=n, line=line, problems=tuple(problems)))
    return findings
