"""iocage runtime services for jailreplica."""

import os
import subprocess
from typing import List, Optional, Sequence

from jailreplica.errors import RootMissingError
from jailreplica.errors_catalog import actionable_error


class JailRuntimeService:
    """Wraps the iocage CLI surface used during provisioning."""

    def __init__(self, logger, console, command_runner, settings):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.settings = settings

    def privileged(self, cmd: Sequence[str]) -> List[str]:
        if self.settings.use_sudo:
            return ["sudo", *cmd]
        return list(cmd)

    def exists(self, jail: str) -> bool:
        result = self.command_runner.run(
            self.privileged(["iocage", "list", "-H", "-q"]),
            description=f"Check whether jail '{jail}' exists",
            read_only=True,
        )
        for line in (result.stdout or "").splitlines():
            columns = line.split()
            if columns and columns[0] == jail:
                return True
        return False

    def state(self, jail: str) -> str:
        result = self.command_runner.run(
            self.privileged(["iocage", "get", "state", jail]),
            check=False,
            read_only=True,
        )
        if result.returncode != 0:
            return ""
        return (result.stdout or "").strip()

    def destroy(self, jail: str):
        self.command_runner.run(
            self.privileged(["iocage", "destroy", "-f", "--recursive", jail]),
            description=f"Force destroy existing jail '{jail}'",
        )

    def start(self, jail: str):
        if self.state(jail) == "up":
            self.console.print(f"[cyan]Jail '{jail}' is already running. Skipping start.[/cyan]")
            self.logger.info("Jail '%s' is already running. Skipping start.", jail)
            return
        self.command_runner.run(
            self.privileged(["iocage", "start", jail]),
            description=f"Start jail '{jail}'",
        )

    def enable_boot(self, jail: str):
        self.command_runner.run(
            self.privileged(["iocage", "set", "boot=on", jail]),
            description=f"Enable start at boot for jail '{jail}'",
        )

    def exec(
        self,
        jail: str,
        cmd: Sequence[str],
        description: Optional[str] = None,
        input_text: Optional[str] = None,
        stdin_path: Optional[str] = None,
        read_only: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            self.privileged(["iocage", "exec", jail, *cmd]),
            description=description,
            input_text=input_text,
            stdin_path=stdin_path,
            read_only=read_only,
            check=check,
        )

    def service(self, jail: str, service: str, action: str, description: Optional[str] = None):
        return self.exec(jail, ["service", service, action], description=description)

    def assert_root_exists(self, jail: str):
        root_path = self.settings.jail_root(jail)
        if self.command_runner.dry_run:
            self.console.print(f"[yellow][DRY-RUN] Skipping jail root check: {root_path}[/yellow]")
            self.logger.info("[DRY-RUN] Skipping jail root check: %s", root_path)
            return
        if not os.path.isdir(root_path):
            raise RootMissingError(actionable_error("root_missing", path=root_path))
