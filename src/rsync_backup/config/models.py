# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsync_backup/config/models.py

from typing import List, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

DEFAULT_MAX_SNAPSHOTS = 15
DEFAULT_MODULE_NAME = "backup"
DEFAULT_MODULE_SIZE = 100


class ModuleSpec(BaseModel):
    """One declared backup unit: a volume, a restricted SSH key and an rsyncd module."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    ssh_key: str = Field(alias="sshKey")
    # whole GB; range and integrality are checked by the compiler
    size: Union[StrictInt, StrictFloat]
    file_system: Optional[str] = Field(default=None, alias="fileSystem")
    mount_options: Optional[str] = Field(default=None, alias="mountOptions")


class AssetSpec(BaseModel):
    """Location of the zipped rsync-backup assets (script + rsyncd.conf template)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bucket: str
    key: str


class LayoutSpec(BaseModel):
    """Paths on the provisioned machine."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    asset_dir: str = Field(default="/srv/rsync-backup", alias="assetDir")
    script_name: str = Field(default="rsync-backup.sh", alias="scriptName")
    template_name: str = Field(default="rsyncd.conf", alias="templateName")
    executable: str = "/usr/local/bin/rsync-backup"
    entry_point: str = Field(default="rsync-backup", alias="entryPoint")
    authorized_keys: str = Field(default="/root/.ssh/authorized_keys", alias="authorizedKeys")
    env_file: str = Field(default="/etc/rsync-backup.env", alias="envFile")
    placeholder: str = "@host@"


class BackupConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    modules: Optional[List[ModuleSpec]] = None      # None / [] -> one synthetic "backup" module
    max_snapshots: Optional[Union[StrictInt, StrictFloat]] = Field(default=None, alias="maxSnapshots")
    file_system: str = Field(default="", alias="fileSystem")
    mount_options: str = Field(default="", alias="mountOptions")

    logs_bucket: str = Field(alias="logsBucket")
    asset: AssetSpec

    device_base: str = Field(default="f", alias="deviceBase")
    device_prefix: str = Field(default="/dev/sd", alias="devicePrefix")

    env_target: Literal["executable", "env-file"] = Field(default="executable", alias="envTarget")
    sink: Literal["user-data", "cfn-init"] = "user-data"
    packages: List[str] = Field(default_factory=lambda: ["awscli", "unzip"])
    layout: LayoutSpec = LayoutSpec()

    def module_names(self) -> List[str]:
        return [m.name for m in self.modules or []]
