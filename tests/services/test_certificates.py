import os
from dataclasses import replace

from jailreplica.services.certificates import CertificateProvisioner
from jailreplica.services.jail_runtime import JailRuntimeService
from jailreplica.services.remote import SshTransport


def _provisioner(settings, logger, console, runner):
    return CertificateProvisioner(
        logger=logger,
        console=console,
        command_runner=runner,
        transport=SshTransport(runner),
        jail_runtime=JailRuntimeService(logger, console, runner, settings),
        settings=settings,
    )


def test_transfer_copies_moves_and_restricts(settings, logger, console, runner):
    provisioner = _provisioner(settings, logger, console, runner)

    provisioner.transfer("root@10.0.0.5", "primary", "replica1")

    target = settings.host_cert_dir("replica1")
    scp = runner.find("scp")[0]
    assert "root@10.0.0.5:/tmp/ssl_certs_primary/ca.pem" in scp.cmd
    assert "root@10.0.0.5:/tmp/ssl_certs_primary/client-key.pem" in scp.cmd
    assert runner.find("mv ")[0].cmd[-1] == target + "/"
    chown = runner.find("chown")[0]
    assert chown.cmd[1] == "88:88"
    assert len(chown.cmd) == 5
    chmod = runner.find("chmod")[0]
    assert chmod.cmd[1] == "600"
    assert runner.commands.index(chown.joined) > runner.commands.index(scp.joined)


def test_transfer_from_local_uses_trusted_directory(settings, logger, console, runner):
    provisioner = _provisioner(replace(settings, use_sudo=True), logger, console, runner)

    provisioner.transfer_from_local("replica1")

    copy = [call for call in runner.calls if call.cmd[:2] == ["sudo", "cp"]][0]
    assert copy.cmd[2] == os.path.join(settings.local_cert_source_dir, "ca.pem")
    assert copy.cmd[-1] == settings.host_cert_dir("replica1") + "/"
    assert runner.find("scp") == []
    assert runner.find("sudo chmod 600")
