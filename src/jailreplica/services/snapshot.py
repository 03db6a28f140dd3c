"""ZFS snapshot export/import services for jailreplica."""

import os
import posixpath
import shlex

from rich.markup import escape

from jailreplica.errors import CommandFailed, MetadataExtractionError, SnapshotNotFoundError
from jailreplica.errors_catalog import actionable_error
from jailreplica.models import ReplicationMetadata, SnapshotRecord
from jailreplica.services.metadata import format_metadata


def snapshot_name(source_jail: str, suffix: str) -> str:
    """Base name of the `.zfs`/`.meta` artifacts."""
    return f"{source_jail}_{suffix}"


def snapshot_tag(dataset: str, suffix: str) -> str:
    """Full ZFS snapshot tag, e.g. `tank/iocage/jails/primary@replica_2025...`."""
    return f"{dataset}@{suffix}"


class SnapshotManager:
    """Creates, exports, verifies and receives jail snapshots."""

    def __init__(self, logger, console, command_runner, transport, jail_runtime, settings):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.transport = transport
        self.jail_runtime = jail_runtime
        self.settings = settings

    def remote_paths(self, name: str):
        base = self.settings.remote_snapshot_backup_dir
        return posixpath.join(base, f"{name}.zfs"), posixpath.join(base, f"{name}.meta")

    def local_paths(self, name: str):
        base = self.settings.snapshot_backup_dir
        return os.path.join(base, f"{name}.zfs"), os.path.join(base, f"{name}.meta")

    def _sudo(self, cmd) -> str:
        return shlex.join(self.jail_runtime.privileged(cmd))

    def read_binlog_coordinates(self, remote: str, source_jail: str):
        result = self.transport.run(
            remote,
            self.jail_runtime.privileged(
                ["iocage", "exec", source_jail, self.settings.mysql_bin_path, "-N", "-e", "SHOW MASTER STATUS"]
            ),
            description=f"Fetch MySQL master status on {source_jail}",
            read_only=True,
        )
        output = (result.stdout or "").strip()
        first_line = output.splitlines()[0] if output else ""
        columns = first_line.split("\t")
        if len(columns) < 2 or not columns[0].strip() or not columns[1].strip().isdigit():
            raise MetadataExtractionError(
                f"Unexpected output when fetching master status:\n{output or '<empty>'}"
            )
        return columns[0].strip(), int(columns[1].strip())

    def create_and_export(self, remote: str, source_jail: str, suffix: str) -> SnapshotRecord:
        name = snapshot_name(source_jail, suffix)
        tag = snapshot_tag(self.settings.jail_dataset(source_jail), suffix)
        zfs_file, meta_file = self.remote_paths(name)

        # coordinates first, then the snapshot, so both describe the same instant
        if self.command_runner.dry_run:
            try:
                binlog_file, binlog_position = self.read_binlog_coordinates(remote, source_jail)
            except (CommandFailed, MetadataExtractionError) as exc:
                self.logger.warning("[DRY-RUN] Could not read master status: %s", exc)
                binlog_file, binlog_position = "[dry-run]", 0
        else:
            binlog_file, binlog_position = self.read_binlog_coordinates(remote, source_jail)

        metadata = ReplicationMetadata(
            binlog_file=binlog_file,
            binlog_position=binlog_position,
            source_host=remote.rpartition("@")[2],
            source_container=source_jail,
        )
        self.console.print(
            f"[cyan]Binlog: {escape(binlog_file)}, Position: {binlog_position}[/cyan]"
        )

        self.transport.run(
            remote,
            self.jail_runtime.privileged(["zfs", "snapshot", "-r", tag]),
            description=f"Create snapshot {tag} on remote",
        )
        self.transport.run(
            remote,
            f"{self._sudo(['zfs', 'send', '-R', tag])} | {self._sudo(['tee', zfs_file])} > /dev/null",
            description=f"Send snapshot to file {zfs_file}",
        )
        self.transport.run(
            remote,
            f"{self._sudo(['tee', meta_file])} > /dev/null",
            description=f"Write binlog metadata to {meta_file}",
            input_text=format_metadata(metadata),
        )

        return SnapshotRecord(name=name, data_file=zfs_file, metadata_file=meta_file, metadata=metadata)

    def verify_remote_artifacts(self, remote: str, name: str):
        zfs_file, meta_file = self.remote_paths(name)
        if self.command_runner.dry_run:
            # export was a no-op, so the files cannot be there yet
            self.console.print(f"[yellow][DRY-RUN] Skipping artifact check on {escape(remote)}[/yellow]")
            self.logger.info("Dry-run: not checking %s and %s on %s", zfs_file, meta_file, remote)
            return
        check = f"test -f {shlex.quote(zfs_file)} && test -f {shlex.quote(meta_file)}"
        try:
            self.transport.run(
                remote,
                check,
                description="Verify snapshot and metadata files exist on remote",
                read_only=True,
            )
        except CommandFailed as exc:
            raise SnapshotNotFoundError(
                actionable_error("snapshot_not_found", snapshot=name, where=f"on {remote}")
            ) from exc

    def verify_local_artifacts(self, name: str):
        zfs_file, meta_file = self.local_paths(name)
        missing = [path for path in (zfs_file, meta_file) if not os.path.isfile(path)]
        if missing:
            raise SnapshotNotFoundError(
                actionable_error(
                    "snapshot_not_found",
                    snapshot=name,
                    where=f"locally ({', '.join(missing)})",
                )
            )
        self.logger.info("Snapshot artifacts present: %s, %s", zfs_file, meta_file)

    def import_from_remote(self, remote: str, name: str, target_jail: str) -> SnapshotRecord:
        remote_zfs, remote_meta = self.remote_paths(name)
        self.command_runner.run(
            self.jail_runtime.privileged(["mkdir", "-p", self.settings.snapshot_backup_dir]),
            description="Ensure local snapshot backup directory exists",
        )
        self.transport.copy_from(
            remote,
            [remote_zfs, remote_meta],
            self.settings.snapshot_backup_dir,
            description="Transfer snapshot and metadata from remote to local",
        )
        return self.import_from_local(name, target_jail)

    def import_from_local(self, name: str, target_jail: str) -> SnapshotRecord:
        zfs_file, meta_file = self.local_paths(name)
        # -F rolls back/overwrites any dataset already at the target path
        self.command_runner.run(
            self.jail_runtime.privileged(["zfs", "receive", "-F", self.settings.jail_dataset(target_jail)]),
            description=f"Receive snapshot into jail {target_jail}",
            stdin_path=zfs_file,
        )
        return SnapshotRecord(name=name, data_file=zfs_file, metadata_file=meta_file)
