"""Shared domain models for jailreplica."""

import enum
import os
import posixpath
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from . import constants
from .errors import ValidationError
from .errors_catalog import actionable_error

LOCALHOST = "localhost"


@dataclass(frozen=True)
class SourceLocation:
    """A `host:name` pair as given on the command line."""

    address: str
    name: str

    @classmethod
    def parse(cls, value: str, option: str) -> "SourceLocation":
        address, sep, name = (value or "").rpartition(":")
        if not sep or not address.strip() or not name.strip():
            raise ValidationError(actionable_error("invalid_location", option=option, value=value))
        return cls(address=address.strip(), name=name.strip())

    @property
    def is_local(self) -> bool:
        return self.address == LOCALHOST

    @property
    def host(self) -> str:
        """The address without any `user@` prefix."""
        return self.address.rpartition("@")[2]

    def __str__(self) -> str:
        return f"{self.address}:{self.name}"


@dataclass(frozen=True)
class ReplicationRequest:
    """Immutable input to a single provisioning run."""

    source: SourceLocation
    target: str
    force: bool = False
    dry_run: bool = False
    skip_verification: bool = False
    ssh_identity: Optional[str] = None


@dataclass(frozen=True)
class ReplicationMetadata:
    """Binlog coordinates and source identity captured at snapshot time."""

    binlog_file: str
    binlog_position: int
    source_host: str
    source_container: str


@dataclass(frozen=True)
class SnapshotRecord:
    name: str
    data_file: str
    metadata_file: str
    # coordinates read by the probe, when this run created the snapshot
    metadata: Optional[ReplicationMetadata] = None


@dataclass
class ContainerConfig:
    """The fields of an iocage `config.json` that provisioning rewrites."""

    ip4_address: str
    boot_enabled: bool
    default_router: str
    hostname: str
    host_uuid: str
    zfs_dataset: str
    allow_raw_sockets: bool
    release: str

    def as_iocage(self) -> Dict[str, object]:
        return {
            "ip4_addr": self.ip4_address,
            "boot": 1 if self.boot_enabled else 0,
            "defaultrouter": self.default_router,
            "host_hostname": self.hostname,
            "host_hostuuid": self.host_uuid,
            "jail_zfs_dataset": self.zfs_dataset,
            "allow_raw_sockets": 1 if self.allow_raw_sockets else 0,
            "release": self.release,
        }


@dataclass(frozen=True)
class ReplicaStatusReport:
    """Parsed `SHOW REPLICA STATUS\\G` output."""

    fields: Dict[str, str] = field(default_factory=dict)
    raw: str = ""

    IO_KEYS = ("Replica_IO_Running", "Slave_IO_Running", "IO_Running")
    SQL_KEYS = ("Replica_SQL_Running", "Slave_SQL_Running", "SQL_Running")
    SSL_KEYS = ("Source_SSL_Allowed", "Master_SSL_Allowed", "SSL_Allowed")

    def _first(self, keys: Tuple[str, ...]) -> str:
        for key in keys:
            if key in self.fields:
                return self.fields[key]
        return "Unknown"

    @property
    def io_running(self) -> str:
        return self._first(self.IO_KEYS)

    @property
    def sql_running(self) -> str:
        return self._first(self.SQL_KEYS)

    @property
    def ssl_allowed(self) -> str:
        return self._first(self.SSL_KEYS)

    @property
    def healthy(self) -> bool:
        return self.io_running == "Yes" and self.sql_running == "Yes" and self.ssl_allowed == "Yes"


class ReplicationState(enum.Enum):
    REQUESTED = "requested"
    JAIL_CHECKED = "jail_checked"
    SNAPSHOT_READY = "snapshot_ready"
    CONTAINER_CONFIGURED = "container_configured"
    CONTAINER_RUNNING = "container_running"
    CERTIFICATES_TRANSFERRED = "certificates_transferred"
    DATABASE_CONFIGURED = "database_configured"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class ReplicationSettings:
    """Host layout and credentials, built once at startup."""

    jails_root: str = constants.JAILS_ROOT
    jails_dataset: str = constants.JAILS_DATASET
    snapshot_backup_dir: str = constants.SNAPSHOT_BACKUP_DIR
    remote_snapshot_backup_dir: str = constants.SNAPSHOT_BACKUP_DIR
    mysql_bin_path: str = constants.MYSQL_BIN_PATH
    mysql_service: str = constants.MYSQL_SERVICE
    mysql_config_relpath: str = constants.MYSQL_CONFIG_RELPATH
    mysql_auto_cnf: str = constants.MYSQL_AUTO_CNF
    mysql_uid: int = constants.MYSQL_UID
    mysql_gid: int = constants.MYSQL_GID
    cert_dir: str = constants.CERT_DIR
    remote_cert_staging_dir: str = constants.REMOTE_CERT_STAGING_DIR
    local_cert_source_dir: str = constants.LOCAL_CERT_SOURCE_DIR
    cert_staging_dir: str = constants.CERT_STAGING_DIR
    replication_user: str = "repl"
    replication_password: Optional[str] = None
    network_interface: str = constants.NETWORK_INTERFACE
    subnet_prefix: str = constants.SUBNET_PREFIX
    default_router: str = constants.DEFAULT_ROUTER
    release: str = constants.RELEASE
    settle_seconds: float = constants.SETTLE_SECONDS
    lock_file: str = constants.LOCK_FILE
    lock_timeout_seconds: float = constants.LOCK_TIMEOUT_SECONDS
    use_sudo: bool = True

    def jail_dir(self, jail: str) -> str:
        return os.path.join(self.jails_root, jail)

    def jail_root(self, jail: str) -> str:
        return os.path.join(self.jails_root, jail, "root")

    def jail_config_path(self, jail: str) -> str:
        return os.path.join(self.jails_root, jail, "config.json")

    def jail_dataset(self, jail: str) -> str:
        return f"{self.jails_dataset}/{jail}"

    def mysql_config_path(self, jail: str) -> str:
        return os.path.join(self.jail_root(jail), self.mysql_config_relpath)

    def host_cert_dir(self, jail: str) -> str:
        return os.path.join(self.jail_root(jail), self.cert_dir.lstrip("/"))

    def jail_cert_path(self, file_name: str) -> str:
        return posixpath.join(self.cert_dir, file_name)
