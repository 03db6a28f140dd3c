"""Jail `config.json` rewriting for jailreplica."""

import json
import os
from typing import Any, Dict, Optional

from jailreplica.errors import ConfigNotFoundError, ConfigParseError
from jailreplica.models import ContainerConfig


class JailConfigurator:
    """Rewrites a received jail's iocage configuration and enables boot start."""

    def __init__(self, logger, console, filesystem_service, allocator, jail_runtime, settings, dry_run: bool = False):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.allocator = allocator
        self.jail_runtime = jail_runtime
        self.settings = settings
        self.dry_run = dry_run

    def load(self, jail: str) -> Dict[str, Any]:
        config_path = self.settings.jail_config_path(jail)
        if not os.path.exists(config_path):
            raise ConfigNotFoundError(f"Jail config not found: {config_path}")
        try:
            data = json.loads(self.filesystem_service.read_text(config_path))
        except (OSError, ValueError) as exc:
            raise ConfigParseError(f"Invalid jail config JSON: {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigParseError(f"Invalid jail config JSON: {config_path}: expected an object")
        return data

    def build(self, jail: str, ip4_address: str) -> ContainerConfig:
        return ContainerConfig(
            ip4_address=ip4_address,
            boot_enabled=True,
            default_router=self.settings.default_router,
            hostname=jail.replace("_", "-"),
            host_uuid=jail,
            zfs_dataset=f"{self.settings.jail_dataset(jail).split('/', 1)[-1]}/data",
            allow_raw_sockets=True,
            release=self.settings.release,
        )

    def configure(self, jail: str) -> Optional[ContainerConfig]:
        config_path = self.settings.jail_config_path(jail)
        if self.dry_run:
            self.console.print(f"[yellow][DRY-RUN] Skipping jail configuration: {config_path}[/yellow]")
            self.logger.info("[DRY-RUN] Skipping jail configuration: %s", config_path)
            return None

        self.console.print(f"[blue]Configuring jail '{jail}'...[/blue]")
        data = self.load(jail)
        config = self.build(jail, self.allocator.next_ip_address())
        data.update(config.as_iocage())

        self.filesystem_service.write_text_atomic(config_path, json.dumps(data, indent=4) + "\n")
        self.logger.info("Jail '%s' configured with %s", jail, config.ip4_address)

        self.jail_runtime.enable_boot(jail)
        return config
