# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/observers/jsonfile.py

from __future__ import annotations
import json
from pathlib import Path
from .events import BaseEvent
from ..utils.serialize import to_jsonable

class JsonFileObserver:
    """
    Appends one JSON object per event (JSONL) to *path*, tagged with the
    event class under ``type``. The CLI writes it next to the run log as
    ``<run_id>.jsonl``.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def notify(self, event: BaseEvent) -> None:
        record = {"type": event.__class__.__name__, **to_jsonable(event)}
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")
