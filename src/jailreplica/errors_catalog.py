"""Actionable error catalog for jailreplica."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_location": {
        "what": "Invalid {option} value '{value}'. Expected `host:name`.",
        "next": "Use `user@host:jail` or `localhost:snapshot` for --from and `localhost:jail` for --to.",
    },
    "target_not_local": {
        "what": "Target '{value}' is not local.",
        "next": "Replicas can only be provisioned on this host; use `--to localhost:<jail>`.",
    },
    "target_exists": {
        "what": "Jail '{jail}' already exists.",
        "next": "Re-run with `--force` to destroy and re-provision it.",
    },
    "snapshot_not_found": {
        "what": "Snapshot artifacts for '{snapshot}' were not found {where}.",
        "next": "Check the snapshot backup directory or create a fresh snapshot from the primary.",
    },
    "root_missing": {
        "what": "Jail root '{path}' does not exist after snapshot transfer.",
        "next": "Inspect the received dataset with `zfs list` and re-run with `--force`.",
    },
    "resource_exhausted": {
        "what": "No free {resource} left in range {low}-{high}.",
        "next": "Destroy unused jails on this host to release addresses and server ids.",
    },
    "pool_locked": {
        "what": "Another provisioning run still holds {path} after {seconds}s.",
        "next": "Wait for the other run to finish or raise `lock_timeout_seconds`.",
    },
    "missing_password": {
        "what": "No replication password configured.",
        "next": "Set `replication_password` in the config file or JAILREPLICA_REPLICATION_PASSWORD.",
    },
    "replication_probe_failed": {
        "what": "Test row '{marker}' was not found on replica '{jail}'.",
        "next": "Check `SHOW REPLICA STATUS` inside the replica and the primary's binlog settings.",
    },
    "replica_status_unhealthy": {
        "what": "Replica '{jail}' reports IO={io}, SQL={sql}, SSL={ssl}.",
        "next": "Review Last_IO_Error/Last_SQL_Error in the status output above.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
