import json
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rsync_backup.cli.app import app

KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyMaterial x"

runner = CliRunner()


def _config(tmp_path: Path, modules: str = "") -> Path:
    f = tmp_path / "backup.yaml"
    f.write_text(textwrap.dedent("""
        logsBucket: rsync-backup-logs
        asset:
          bucket: cdk-assets
          key: abc123.zip
    """) + modules)
    return f


def _db(name="db", size=50):
    return f"modules:\n  - name: \"{name}\"\n    sshKey: \"{KEY}\"\n    size: {size}\n"


@pytest.fixture(autouse=True)
def _no_override_env(monkeypatch):
    monkeypatch.delenv("RSYNC_BACKUP_OVERRIDES", raising=False)


def test_compile_writes_user_data(tmp_path: Path):
    cfg = _config(tmp_path, _db())
    tmpl = tmp_path / "rsyncd.conf"
    tmpl.write_text("[@host@]\n")
    out = tmp_path / "out" / "user-data.sh"
    result = runner.invoke(app, [
        "compile", str(cfg), "--template", str(tmpl), "--output", str(out), "--log-dir", str(tmp_path / "logs"),
    ])
    assert result.exit_code == 0, result.output
    script = out.read_text()
    assert script.startswith("#!/bin/bash")
    assert 'command="rsync-backup db 50 /dev/sdf"' in script
    assert list((tmp_path / "logs").glob("*.jsonl"))
    (log_file,) = (tmp_path / "logs").glob("rsync_backup-backup-*.log")
    trace = log_file.read_text()
    assert f"config={cfg} sink=from config" in trace
    assert "[EVENT] PlanComputed (user-data): 1 module(s) [db->/dev/sdf]" in trace


def test_compile_cfn_init_sink(tmp_path: Path):
    out = tmp_path / "init.yaml"
    result = runner.invoke(app, [
        "compile", str(_config(tmp_path)), "--sink", "cfn-init", "--output", str(out), "--log-dir", str(tmp_path / "logs"),
    ])
    assert result.exit_code == 0, result.output
    assert out.read_text().startswith("AWS::CloudFormation::Init:")


def test_compile_json_dump(tmp_path: Path):
    out = tmp_path / "plan.json"
    result = runner.invoke(app, [
        "compile", str(_config(tmp_path, _db())), "--json", "--output", str(out), "--log-dir", str(tmp_path / "logs"),
    ])
    assert result.exit_code == 0, result.output
    plan = json.loads(out.read_text())
    assert plan["modules"][0]["name"] == "db"
    assert plan["assignments"][0]["letter"] == "f"
    assert plan["environment"]["MAX_SNAPSHOTS"] == "15"
    assert plan["actions"][-1]["argv"] == ["rm", "/srv/rsync-backup/rsyncd.conf"]


def test_compile_rejects_unsafe_module_name(tmp_path: Path):
    out = tmp_path / "user-data.sh"
    result = runner.invoke(app, [
        "compile", str(_config(tmp_path, _db(name="db;rm"))), "--output", str(out), "--log-dir", str(tmp_path / "logs"),
    ])
    assert result.exit_code == 1
    assert "db;rm" in result.output
    assert "compile failed [identifier]" in result.output
    assert not out.exists()


def test_compile_rejects_unknown_sink(tmp_path: Path):
    result = runner.invoke(app, [
        "compile", str(_config(tmp_path)), "--sink", "ignition", "--log-dir", str(tmp_path / "logs"),
    ])
    assert result.exit_code == 2
    assert "Unknown plan sink" in result.output


def test_validate_prints_device_table(tmp_path: Path):
    result = runner.invoke(app, ["validate", str(_config(tmp_path, _db()))])
    assert result.exit_code == 0, result.output
    assert "/dev/sdf" in result.output
    assert "maxSnapshots=15" in result.output


def test_validate_default_module(tmp_path: Path):
    result = runner.invoke(app, ["validate", str(_config(tmp_path))])
    assert result.exit_code == 0, result.output
    assert "backup" in result.output
    assert "default module" in result.output


def test_validate_reports_bad_size(tmp_path: Path):
    result = runner.invoke(app, ["validate", str(_config(tmp_path, _db(size=0)))])
    assert result.exit_code == 1
    assert "size must be a positive integer" in result.output


def test_missing_config_file(tmp_path: Path):
    result = runner.invoke(app, ["validate", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_audit(tmp_path: Path):
    keys = tmp_path / "authorized_keys"
    keys.write_text(
        'no-port-forwarding,no-agent-forwarding,no-X11-forwarding,command="rsync-backup db 50 /dev/sdf" ' + KEY + "\n"
    )
    result = runner.invoke(app, ["audit", str(keys)])
    assert result.exit_code == 0, result.output
    assert "ok" in result.output

    keys.write_text(keys.read_text() + KEY + "\n")
    result = runner.invoke(app, ["audit", str(keys)])
    assert result.exit_code == 2
    assert ":2: " in result.output
