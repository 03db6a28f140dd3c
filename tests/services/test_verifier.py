import pytest

from jailreplica.errors import ReplicationProbeFailed
from jailreplica.services.jail_runtime import JailRuntimeService
from jailreplica.services.remote import SshTransport
from jailreplica.services.verifier import ReplicationVerifier, parse_replica_status

HEALTHY_STATUS = """*************************** 1. row ***************************
             Replica_IO_State: Waiting for source to send event
                  Source_Host: 10.0.0.5
           Replica_IO_Running: Yes
          Replica_SQL_Running: Yes
           Source_SSL_Allowed: Yes
"""


def _verifier(settings, logger, console, runner, dry_run=False):
    sleeps = []
    verifier = ReplicationVerifier(
        logger=logger,
        console=console,
        transport=SshTransport(runner),
        jail_runtime=JailRuntimeService(logger, console, runner, settings),
        settings=settings,
        dry_run=dry_run,
        sleep=sleeps.append,
    )
    return verifier, sleeps


def test_parse_status_all_yes_is_healthy():
    report = parse_replica_status(HEALTHY_STATUS)

    assert report.io_running == "Yes"
    assert report.sql_running == "Yes"
    assert report.ssl_allowed == "Yes"
    assert report.healthy


def test_parse_status_ssl_no_is_unhealthy():
    report = parse_replica_status(HEALTHY_STATUS.replace("Source_SSL_Allowed: Yes", "Source_SSL_Allowed: No"))

    assert report.ssl_allowed == "No"
    assert not report.healthy


def test_parse_status_accepts_legacy_key_names():
    output = "Slave_IO_Running: Yes\nSlave_SQL_Running: Connecting\nMaster_SSL_Allowed: Yes\n"

    report = parse_replica_status(output)

    assert report.sql_running == "Connecting"
    assert not report.healthy


def test_parse_status_empty_output_is_unknown():
    report = parse_replica_status("")

    assert report.io_running == "Unknown"
    assert not report.healthy


def test_probe_passes_when_marker_replicates(settings, logger, console, runner):
    marker = "replication check @ 20250101000000 abcd1234"
    runner.on("SELECT msg FROM testdb.ping", stdout=f"{marker}\n")
    verifier, sleeps = _verifier(settings, logger, console, runner)

    assert verifier.probe_end_to_end("root@10.0.0.5", "primary", "replica1", marker=marker) is True

    insert = runner.find("ssh root@10.0.0.5")[0]
    assert "iocage exec primary /usr/local/bin/mysql" in insert.joined
    assert f"INSERT INTO testdb.ping (msg) VALUES ('{marker}');" in insert.input_text
    assert sleeps == [settings.settle_seconds]
    assert runner.find("iocage exec replica1")[0].read_only


def test_probe_fails_when_marker_missing(settings, logger, console, runner):
    verifier, _ = _verifier(settings, logger, console, runner)

    with pytest.raises(ReplicationProbeFailed, match="was not found on replica 'replica1'"):
        verifier.probe_end_to_end("root@10.0.0.5", "primary", "replica1", marker="marker-1")


def test_probe_skipped_with_skip_flag(settings, logger, console, runner):
    verifier, sleeps = _verifier(settings, logger, console, runner)

    assert verifier.probe_end_to_end("root@10.0.0.5", "primary", "replica1", skip=True) is False
    assert runner.calls == []
    assert sleeps == []


def test_check_status_returns_report(settings, logger, console, runner):
    runner.on("SHOW REPLICA STATUS", stdout=HEALTHY_STATUS)
    verifier, _ = _verifier(settings, logger, console, runner)

    report = verifier.check_status("replica1")

    assert report.healthy
    assert ("info", "Source_SSL_Allowed: Yes") in logger.messages


def test_check_status_prints_raw_output_when_unhealthy(settings, logger, console, runner):
    unhealthy = HEALTHY_STATUS.replace("Replica_IO_Running: Yes", "Replica_IO_Running: No")
    runner.on("SHOW REPLICA STATUS", stdout=unhealthy)
    verifier, _ = _verifier(settings, logger, console, runner)

    report = verifier.check_status("replica1")

    assert not report.healthy
    assert unhealthy in console.lines


def test_checks_skipped_in_dry_run(settings, logger, console, dry_runner):
    verifier, _ = _verifier(settings, logger, console, dry_runner, dry_run=True)

    assert verifier.check_status("replica1") is None
    assert verifier.probe_end_to_end("root@10.0.0.5", "primary", "replica1") is False
    assert dry_runner.calls == []
