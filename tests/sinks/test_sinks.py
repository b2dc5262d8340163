import base64

import pytest
import yaml

from rsync_backup.config.models import BackupConfig
from rsync_backup.compiler.compile import compile_plan
from rsync_backup.sinks.cfn_init import INIT_KEY, CfnInitSink
from rsync_backup.sinks.registry import get_sink
from rsync_backup.sinks.userdata import UserDataSink

KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyMaterial x"
TEMPLATE = b"[@host@]\n    path = /mnt/@host@\n"


def _plan(modules=None, template=TEMPLATE):
    data = {
        "logsBucket": "rsync-backup-logs",
        "asset": {"bucket": "cdk-assets", "key": "abc123.zip"},
    }
    if modules is not None:
        data["modules"] = modules
    return compile_plan(BackupConfig.model_validate(data), template=template)


def _db():
    return [{"name": "db", "sshKey": KEY, "size": 50}]


def test_registry_returns_both_sinks():
    assert isinstance(get_sink("user-data"), UserDataSink)
    assert isinstance(get_sink("cfn-init"), CfnInitSink)
    with pytest.raises(ValueError):
        get_sink("ignition")


def test_user_data_is_a_strict_bash_script():
    script = UserDataSink().render(_plan(_db()))
    assert script.startswith("#!/bin/bash\n")
    assert "set -euo pipefail\n" in script
    assert "# modules: db\n" in script


def test_user_data_keeps_plan_order():
    script = UserDataSink().render(_plan(_db()))
    markers = [
        "apt-get update",
        "aws s3 cp s3://cdk-assets/abc123.zip /tmp/abc123.zip",
        "unzip /tmp/abc123.zip -d /srv/rsync-backup",
        "rsyncd.db.conf",
        ">> /root/.ssh/authorized_keys",
        "MAX_SNAPSHOTS=15",
    ]
    positions = [script.index(m) for m in markers]
    assert positions == sorted(positions)
    assert script.rstrip().splitlines()[-1] == "rm /srv/rsync-backup/rsyncd.conf"


def test_user_data_quotes_the_authorization_line():
    script = UserDataSink().render(_plan(_db()))
    assert (
        "echo 'no-port-forwarding,no-agent-forwarding,no-X11-forwarding,"
        "command=\"rsync-backup db 50 /dev/sdf\" " + KEY + "' >> /root/.ssh/authorized_keys"
    ) in script


def test_user_data_writes_rendered_config_byte_exact():
    script = UserDataSink().render(_plan(_db()))
    encoded = base64.b64encode(b"[db]\n    path = /mnt/db\n").decode()
    assert f"printf '%s' {encoded} | base64 -d > /srv/rsync-backup/rsyncd.db.conf" in script
    assert "chmod 0644 /srv/rsync-backup/rsyncd.db.conf" in script


def test_user_data_default_module_patches_existing_key():
    script = UserDataSink().render(_plan())
    assert "# modules: backup (default)" in script
    assert "sed -i '\\%command=\"rsync-backup %!s#" in script
    assert ">> /root/.ssh/authorized_keys" not in script


def test_cfn_init_config_set_lists_every_action_in_order():
    plan = _plan(_db())
    doc = yaml.safe_load(CfnInitSink().render(plan))
    init = doc[INIT_KEY]
    order = init["configSets"]["default"]
    assert len(order) == len(plan.actions)
    assert list(init)[1:] == order
    assert order[0] == "000-apt-update"
    assert order[-1].endswith("-cleanup")


def test_cfn_init_file_and_command_entries():
    plan = _plan(_db())
    init = yaml.safe_load(CfnInitSink().render(plan))[INIT_KEY]

    (write_key,) = [k for k in init["configSets"]["default"] if k.endswith("write-config-db")]
    entry = init[write_key]["files"]["/srv/rsync-backup/rsyncd.db.conf"]
    assert entry["content"] == "[db]\n    path = /mnt/db\n"
    assert entry["mode"] == "000644"

    (auth_key,) = [k for k in init["configSets"]["default"] if k.endswith("authorize-db")]
    (cmd,) = init[auth_key]["commands"].values()
    assert cmd["command"].endswith(">> /root/.ssh/authorized_keys")
    assert 'command="rsync-backup db 50 /dev/sdf"' in cmd["command"]


def test_cfn_init_binary_content_is_base64():
    plan = _plan(_db(), template=b"\xff@host@\xfe")
    init = yaml.safe_load(CfnInitSink().render(plan))[INIT_KEY]
    (write_key,) = [k for k in init if k.endswith("write-config-db")]
    entry = init[write_key]["files"]["/srv/rsync-backup/rsyncd.db.conf"]
    assert entry["encoding"] == "base64"
    assert base64.b64decode(entry["content"]) == b"\xffdb\xfe"


@pytest.mark.parametrize("name", ["user-data", "cfn-init"])
def test_rendering_is_byte_identical_across_compilations(name):
    first = get_sink(name).render(_plan(_db()))
    second = get_sink(name).render(_plan(_db()))
    assert first == second
