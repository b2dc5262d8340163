# src/rsync_backup/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                 # ISO timestamp
    run_id: str             # correlates all events of one compile invocation
    sink: str               # user-data / cfn-init
    source: Optional[str]   # config file the plan came from, if any

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(sink: str, source: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": str(uuid.uuid4()),
        "sink": sink,
        "source": source,
    }


# ---------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    modules: List[str]
    devices: List[str]
    actions: int
    synthetic: bool = False

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str
    rule: Optional[str] = None


# ---------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanRendered(BaseEvent):
    path: Optional[str]
    size_bytes: int
