# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "rsync_backup",
    sink: str | None = None,
    source: Path | str | None = None,
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Set up logging for one compile run.

    The file handler keeps the full DEBUG trace; the console handler writes
    to stderr so a plan printed on stdout stays clean. The log file name
    carries the config stem, so runs for different hosts sort apart:
    ``<name>-<config stem>-<UTC ts>-<run_id>.log``.

    Returns (logger, run_id, log_path); observers reuse the run_id.
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        base_dir = Path.home() / ".rsync-backup" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    stem = f"{name}-{Path(source).stem}" if source else name
    log_path = base_dir / f"{stem}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.debug("=== rsync-backup compile started ===")
    logger.debug(f"run_id={run_id}")
    logger.debug(f"config={source or '-'} sink={sink or 'from config'}")
    logger.debug(f"log_file={log_path}")

    return logger, run_id, log_path
