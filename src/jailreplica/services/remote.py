"""SSH/SCP transport for commands that run on the source host."""

import shlex
import subprocess
from typing import List, Optional, Sequence, Union


class SshTransport:
    """Builds ``ssh``/``scp`` argument vectors and runs them via the command runner.

    Remote commands given as a list are quoted with :func:`shlex.join` before
    being handed to the remote shell. A plain string is passed through as-is and
    is only used for pipelines the caller has already quoted.
    """

    def __init__(self, command_runner, ssh_key: Optional[str] = None):
        self.command_runner = command_runner
        self.ssh_key = ssh_key

    def _identity_args(self) -> List[str]:
        return ["-i", self.ssh_key] if self.ssh_key else []

    def ssh_command(self, remote: str, command: Union[str, Sequence[str]]) -> List[str]:
        remote_cmd = command if isinstance(command, str) else shlex.join(command)
        return ["ssh", *self._identity_args(), remote, remote_cmd]

    def run(
        self,
        remote: str,
        command: Union[str, Sequence[str]],
        description: Optional[str] = None,
        input_text: Optional[str] = None,
        read_only: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            self.ssh_command(remote, command),
            description=description,
            input_text=input_text,
            read_only=read_only,
            check=check,
        )

    def copy_from(
        self,
        remote: str,
        remote_paths: Sequence[str],
        local_dir: str,
        description: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        sources = [f"{remote}:{path}" for path in remote_paths]
        cmd = ["scp", *self._identity_args(), *sources, local_dir.rstrip("/") + "/"]
        return self.command_runner.run(cmd, description=description)
