from dataclasses import replace

import pytest

from jailreplica.errors import RootMissingError
from jailreplica.services.jail_runtime import JailRuntimeService


def test_exists_parses_iocage_list(settings, logger, console, runner):
    runner.on("iocage list", stdout="primary\tup\t10.0.0.5\nreplica1\tdown\t-\n")
    runtime = JailRuntimeService(logger, console, runner, settings)

    assert runtime.exists("replica1")
    assert not runtime.exists("replica")
    assert runner.calls[0].read_only


def test_privileged_prefixes_sudo(settings, logger, console, runner):
    runtime = JailRuntimeService(logger, console, runner, replace(settings, use_sudo=True))

    runtime.destroy("replica1")

    assert runner.commands == ["sudo iocage destroy -f --recursive replica1"]


def test_start_skips_running_jail(settings, logger, console, runner):
    runner.on("iocage get state", stdout="up\n")
    runtime = JailRuntimeService(logger, console, runner, settings)

    runtime.start("replica1")

    assert runner.find("iocage start") == []


def test_start_starts_stopped_jail(settings, logger, console, runner):
    runner.on("iocage get state", stdout="down\n")
    runtime = JailRuntimeService(logger, console, runner, settings)

    runtime.start("replica1")

    assert runner.commands[-1] == "iocage start replica1"


def test_state_query_failure_is_treated_as_not_running(settings, logger, console, runner):
    runner.on("iocage get state", returncode=1, stderr="no such jail")
    runtime = JailRuntimeService(logger, console, runner, settings)

    assert runtime.state("replica1") == ""


def test_assert_root_exists(settings, logger, console, runner, tmp_path):
    runtime = JailRuntimeService(logger, console, runner, settings)

    with pytest.raises(RootMissingError, match="does not exist after snapshot transfer"):
        runtime.assert_root_exists("replica1")

    (tmp_path / "jails" / "replica1" / "root").mkdir(parents=True)
    runtime.assert_root_exists("replica1")
