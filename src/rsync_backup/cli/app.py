# src/rsync_backup/cli/app.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from rsync_backup.config.loader import load_config
from rsync_backup.compiler.access import audit as audit_keys
from rsync_backup.compiler.compile import compile_plan
from rsync_backup.compiler.devices import allocate_devices
from rsync_backup.compiler.errors import BackupCompileError
from rsync_backup.compiler.validator import validate_modules
from rsync_backup.sinks.registry import get_sink
from rsync_backup.utils.serialize import to_jsonable

from rsync_backup.logging.log import init_logging
from rsync_backup.observers.console import ConsoleObserver
from rsync_backup.observers.dispatcher import EventBus
from rsync_backup.observers.logger import LoggerObserver
from rsync_backup.observers.jsonfile import JsonFileObserver
from rsync_backup.observers.events import new_ctx, PlanRendered


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="rsync-backup bootstrap compiler")


def _fail(msg: str, code: int = 1) -> None:
    typer.echo(f"error: {msg}", err=True)
    raise typer.Exit(code=code)


def _load(config: Path):
    try:
        return load_config(config)
    except FileNotFoundError:
        _fail(f"config file not found: {config}")
    except yaml.YAMLError as e:
        _fail(f"{config} is not valid YAML: {e}")
    except ValidationError as e:
        _fail(f"{config} is not a valid backup config:\n{e}")


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command("compile")
def compile_cmd(
    config: Path = typer.Argument(..., help="Backup config (YAML)"),
    template: Optional[Path] = typer.Option(
        None, "--template", "-t",
        help="rsyncd.conf template; rendered at compile time instead of patched on the machine",
    ),
    sink: Optional[str] = typer.Option(None, "--sink", "-s", help="user-data | cfn-init (default: from config)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write here instead of stdout"),
    as_json: bool = typer.Option(False, "--json", help="Dump the plan structure as JSON"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Run logs (default ~/.rsync-backup/logs)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Compile the declared modules into a first-boot bootstrap plan.
    """
    logger, run_id, log_path = init_logging(base_dir=log_dir, sink=sink, source=config, verbose=verbose)
    cfg = _load(config)
    sink_name = sink or cfg.sink

    observers = [
        LoggerObserver(logger),
        JsonFileObserver(log_path.parent / f"{run_id}.jsonl"),
    ]
    if verbose:
        observers.append(ConsoleObserver())
    bus = EventBus(observers=observers)

    event_ctx = new_ctx(sink=sink_name, source=str(config))
    event_ctx["run_id"] = run_id

    try:
        renderer = get_sink(sink_name)
        template_bytes = template.read_bytes() if template else None
        plan = compile_plan(cfg, template=template_bytes, bus=bus, run_ctx=event_ctx)
    except OSError as e:
        _fail(f"cannot read template: {e}")
    except BackupCompileError as e:
        _fail(f"compile failed [{e.rule}]: {e}")
    except ValueError as e:
        # unknown sink name
        _fail(str(e), code=2)

    if as_json:
        text = json.dumps(to_jsonable(plan), indent=2) + "\n"
    else:
        text = renderer.render(plan)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text)
        logger.info(f"Wrote {renderer.name} plan for {', '.join(plan.names())} to {output}")
    else:
        typer.echo(text, nl=False)

    bus.emit(PlanRendered(path=str(output) if output else None, size_bytes=len(text.encode()), **event_ctx))


@app.command("validate")
def validate_cmd(
    config: Path = typer.Argument(..., help="Backup config (YAML)"),
):
    """
    Validate modules and allocate devices without building a plan.
    """
    cfg = _load(config)
    try:
        validated = validate_modules(cfg.modules, cfg.max_snapshots)
        assignments = allocate_devices(validated.modules, cfg.device_base, cfg.device_prefix)
    except BackupCompileError as e:
        _fail(str(e))

    for m, dev in zip(validated.modules, assignments):
        typer.echo(f"{m.name:<24} {int(m.size):>6} GB  {dev.path}")
    if validated.synthetic:
        typer.echo("(no modules declared, using the default module)")
    typer.echo(f"maxSnapshots={validated.max_snapshots}")


@app.command("audit")
def audit_cmd(
    authorized_keys: Path = typer.Argument(..., help="authorized_keys file to check"),
    entry_point: str = typer.Option("rsync-backup", "--entry-point", help="Expected forced command"),
):
    """
    Check that every key is bound to exactly one rsync-backup module command.
    """
    try:
        text = authorized_keys.read_text()
    except OSError as e:
        _fail(f"cannot read {authorized_keys}: {e}")

    findings = audit_keys(text, entry_point)
    for f in findings:
        typer.echo(f"{authorized_keys}:{f.lineno}: {'; '.join(f.problems)}")
    if findings:
        raise typer.Exit(code=2)
    typer.echo("ok")


if __name__ == "__main__":
    app()
