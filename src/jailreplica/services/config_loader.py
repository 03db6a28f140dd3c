"""Configuration loader for jailreplica."""

import dataclasses
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from jailreplica.errors import ValidationError
from jailreplica.models import ReplicationSettings


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults and host settings."""

    CLI_KEYS = {
        "from",
        "to",
        "force",
        "dry_run",
        "skip_test",
        "verbose",
        "log_file",
        "log_dir",
        "report_file",
        "ssh_key",
    }
    SETTINGS_KEYS = {item.name for item in dataclasses.fields(ReplicationSettings)}
    SUPPORTED_KEYS = CLI_KEYS | SETTINGS_KEYS

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ValidationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ValidationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ValidationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ValidationError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def build_settings(self, config: Dict[str, Any], **overrides: Any) -> ReplicationSettings:
        values = {key: value for key, value in config.items() if key in self.SETTINGS_KEYS}
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return ReplicationSettings(**values)
        except TypeError as exc:
            raise ValidationError(f"Invalid settings: {exc}") from exc
