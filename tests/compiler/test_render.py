from rsync_backup.config.models import ModuleSpec
from rsync_backup.compiler.render import render_config, render_configs

KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyMaterial x"
TEMPLATE = b"[@host@]\n    path = /mnt/@host@/current\n    read only = false\n"


def test_placeholder_is_replaced_everywhere():
    rc = render_config(TEMPLATE, ModuleSpec(name="db", ssh_key=KEY, size=50))
    assert rc.module == "db"
    assert rc.path == "/srv/rsync-backup/rsyncd.db.conf"
    assert rc.content == b"[db]\n    path = /mnt/db/current\n    read only = false\n"
    assert b"@host@" not in rc.content


def test_no_overrides_appends_nothing():
    rc = render_config(TEMPLATE, ModuleSpec(name="db", ssh_key=KEY, size=50))
    assert rc.content.count(b"\n") == TEMPLATE.count(b"\n")


def test_overrides_are_appended_after_body():
    m = ModuleSpec(name="db", ssh_key=KEY, size=50, file_system="xfs", mount_options="noatime,nodiratime")
    rc = render_config(TEMPLATE, m)
    assert rc.content.startswith(b"[db]\n")
    assert rc.content.endswith(b'FILE_SYSTEM=xfs\nMOUNT_OPTS="noatime,nodiratime"\n')


def test_override_goes_on_its_own_line_without_trailing_newline():
    m = ModuleSpec(name="db", ssh_key=KEY, size=50, file_system="ext4")
    rc = render_config(b"[@host@]", m)
    assert rc.content == b"[db]\nFILE_SYSTEM=ext4\n"


def test_custom_placeholder_and_directory():
    rc = render_config(b"<<H>> <<H>>", ModuleSpec(name="w", ssh_key=KEY, size=1), placeholder="<<H>>", directory="/etc/rsyncd")
    assert rc.content == b"w w"
    assert rc.path == "/etc/rsyncd/rsyncd.w.conf"


def test_without_template_nothing_is_rendered():
    assert render_configs(None, (ModuleSpec(name="db", ssh_key=KEY, size=50),)) == ()
