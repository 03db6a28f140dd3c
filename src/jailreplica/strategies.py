"""Where the snapshot for a replica comes from: a remote primary or local files."""

import abc
from datetime import datetime
from typing import Callable

from . import constants
from .models import ReplicationMetadata, ReplicationRequest, SnapshotRecord


def timestamp_suffix() -> str:
    return datetime.now().strftime(constants.SNAPSHOT_SUFFIX_FORMAT)


class SnapshotSource(abc.ABC):
    """Provides the snapshot and the certificates for one provisioning run."""

    def __init__(self, request: ReplicationRequest, snapshots, certificates):
        self.request = request
        self.snapshots = snapshots
        self.certificates = certificates

    @abc.abstractmethod
    def prepare_snapshot(self) -> SnapshotRecord:
        """Leaves the snapshot received into the target dataset and returns its record."""

    @abc.abstractmethod
    def transfer_certificates(self):
        pass

    @abc.abstractmethod
    def probe_host(self, metadata: ReplicationMetadata) -> str:
        """SSH destination used to write the end-to-end test row on the source."""


class RemoteSnapshotSource(SnapshotSource):
    """Snapshots a jail on a remote primary and pulls the artifacts over SSH."""

    def __init__(self, request, snapshots, certificates, suffix_factory: Callable[[], str] = timestamp_suffix):
        super().__init__(request, snapshots, certificates)
        self.suffix_factory = suffix_factory

    def prepare_snapshot(self) -> SnapshotRecord:
        remote = self.request.source.address
        created = self.snapshots.create_and_export(remote, self.request.source.name, self.suffix_factory())
        self.snapshots.verify_remote_artifacts(remote, created.name)
        received = self.snapshots.import_from_remote(remote, created.name, self.request.target)
        return SnapshotRecord(
            name=received.name,
            data_file=received.data_file,
            metadata_file=received.metadata_file,
            metadata=created.metadata,
        )

    def transfer_certificates(self):
        self.certificates.transfer(self.request.source.address, self.request.source.name, self.request.target)

    def probe_host(self, metadata: ReplicationMetadata) -> str:
        return self.request.source.address


class LocalSnapshotSource(SnapshotSource):
    """Receives a snapshot whose `.zfs`/`.meta` files are already on this host.

    The `--from localhost:<name>` value names the snapshot, not a jail.
    """

    def prepare_snapshot(self) -> SnapshotRecord:
        name = self.request.source.name
        self.snapshots.verify_local_artifacts(name)
        return self.snapshots.import_from_local(name, self.request.target)

    def transfer_certificates(self):
        self.certificates.transfer_from_local(self.request.target)

    def probe_host(self, metadata: ReplicationMetadata) -> str:
        return metadata.source_host


def build_snapshot_source(request: ReplicationRequest, snapshots, certificates) -> SnapshotSource:
    if request.source.is_local:
        return LocalSnapshotSource(request, snapshots, certificates)
    return RemoteSnapshotSource(request, snapshots, certificates)
