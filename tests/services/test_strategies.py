from jailreplica.models import ReplicationMetadata, ReplicationRequest, SnapshotRecord, SourceLocation
from jailreplica.strategies import LocalSnapshotSource, RemoteSnapshotSource, build_snapshot_source

METADATA = ReplicationMetadata("mysql-bin.000007", 4821, "10.0.0.5", "primary")


class FakeSnapshots:
    def __init__(self):
        self.calls = []

    def create_and_export(self, remote, source_jail, suffix):
        self.calls.append(("create_and_export", remote, source_jail, suffix))
        return SnapshotRecord(f"{source_jail}_{suffix}", "/remote/x.zfs", "/remote/x.meta", METADATA)

    def verify_remote_artifacts(self, remote, name):
        self.calls.append(("verify_remote_artifacts", remote, name))

    def import_from_remote(self, remote, name, target):
        self.calls.append(("import_from_remote", remote, name, target))
        return SnapshotRecord(name, f"/local/{name}.zfs", f"/local/{name}.meta")

    def verify_local_artifacts(self, name):
        self.calls.append(("verify_local_artifacts", name))

    def import_from_local(self, name, target):
        self.calls.append(("import_from_local", name, target))
        return SnapshotRecord(name, f"/local/{name}.zfs", f"/local/{name}.meta")


class FakeCertificates:
    def __init__(self):
        self.calls = []

    def transfer(self, remote, source_jail, target):
        self.calls.append(("transfer", remote, source_jail, target))

    def transfer_from_local(self, target):
        self.calls.append(("transfer_from_local", target))


def _request(source):
    return ReplicationRequest(source=SourceLocation.parse(source, "--from"), target="replica1")


def test_factory_picks_strategy_by_source_host():
    assert isinstance(build_snapshot_source(_request("root@db1:primary"), None, None), RemoteSnapshotSource)
    assert isinstance(build_snapshot_source(_request("localhost:primary_snap"), None, None), LocalSnapshotSource)


def test_remote_source_creates_verifies_then_imports():
    snapshots, certificates = FakeSnapshots(), FakeCertificates()
    source = RemoteSnapshotSource(
        _request("root@db1:primary"), snapshots, certificates, suffix_factory=lambda: "replica_1"
    )

    record = source.prepare_snapshot()
    source.transfer_certificates()

    assert [call[0] for call in snapshots.calls] == [
        "create_and_export",
        "verify_remote_artifacts",
        "import_from_remote",
    ]
    assert record.name == "primary_replica_1"
    assert record.metadata_file == "/local/primary_replica_1.meta"
    assert record.metadata == METADATA
    assert certificates.calls == [("transfer", "root@db1", "primary", "replica1")]
    assert source.probe_host(METADATA) == "root@db1"


def test_local_source_verifies_before_import():
    snapshots, certificates = FakeSnapshots(), FakeCertificates()
    source = LocalSnapshotSource(_request("localhost:primary_replica_1"), snapshots, certificates)

    source.prepare_snapshot()
    source.transfer_certificates()

    assert snapshots.calls == [
        ("verify_local_artifacts", "primary_replica_1"),
        ("import_from_local", "primary_replica_1", "replica1"),
    ]
    assert certificates.calls == [("transfer_from_local", "replica1")]
    assert source.probe_host(METADATA) == "10.0.0.5"
