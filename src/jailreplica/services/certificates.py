"""TLS certificate provisioning for replica jails."""

import os
from typing import List

from jailreplica import constants


class CertificateProvisioner:
    """Places the CA, client certificate and client key inside the replica jail."""

    def __init__(self, logger, console, command_runner, transport, jail_runtime, settings):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.transport = transport
        self.jail_runtime = jail_runtime
        self.settings = settings

    def _files_in(self, directory: str) -> List[str]:
        return [os.path.join(directory, name) for name in constants.CERT_FILES]

    def transfer(self, remote: str, source_jail: str, target_jail: str):
        """Copies certificates staged on the remote primary into ``target_jail``."""
        self.logger.info("Transferring certificates from %s (%s) to %s", remote, source_jail, target_jail)
        staging = self.settings.cert_staging_dir
        self.command_runner.run(
            ["mkdir", "-p", staging],
            description="Create local certificate staging directory",
        )
        remote_files = [
            f"{self.settings.remote_cert_staging_dir.rstrip('/')}/{name}" for name in constants.CERT_FILES
        ]
        self.transport.copy_from(
            remote,
            remote_files,
            staging,
            description="Copy SSL certs from remote primary jail",
        )

        cert_target = self._ensure_target_dir(target_jail)
        self.command_runner.run(
            self.jail_runtime.privileged(["mv", *self._files_in(staging), cert_target + "/"]),
            description="Move certs to replica jail",
        )
        self._restrict(cert_target)

    def transfer_from_local(self, target_jail: str):
        """Copies certificates from the host's trusted local directory into ``target_jail``."""
        cert_target = self._ensure_target_dir(target_jail)
        self.command_runner.run(
            self.jail_runtime.privileged(
                ["cp", *self._files_in(self.settings.local_cert_source_dir), cert_target + "/"]
            ),
            description="Copy local SSL certs to replica jail",
        )
        self._restrict(cert_target)

    def _ensure_target_dir(self, target_jail: str) -> str:
        cert_target = self.settings.host_cert_dir(target_jail)
        self.command_runner.run(
            self.jail_runtime.privileged(["mkdir", "-p", cert_target]),
            description="Create cert target directory in replica jail",
        )
        return cert_target

    def _restrict(self, cert_target: str):
        files = self._files_in(cert_target)
        owner = f"{self.settings.mysql_uid}:{self.settings.mysql_gid}"
        self.command_runner.run(
            self.jail_runtime.privileged(["chown", owner, *files]),
            description="Set MySQL user:group ownership on certs",
        )
        self.command_runner.run(
            self.jail_runtime.privileged(["chmod", constants.CERT_MODE, *files]),
            description="Restrict cert file permissions",
        )
