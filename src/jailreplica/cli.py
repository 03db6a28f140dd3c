import logging
import os
from datetime import datetime

import click
from rich.logging import RichHandler

from .core import Replicator
from .errors import ReplicaError
from .errors_catalog import actionable_error
from .models import ReplicationRequest, SourceLocation
from .services.config_loader import ConfigLoader

PASSWORD_ENV_VAR = "JAILREPLICA_REPLICATION_PASSWORD"
DEFAULT_CONFIG_FILE = ".jailreplica.yml"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _run_log_path(log_dir: str, target: str) -> str:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return os.path.join(log_dir, f"{target}_{stamp}.log")


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--from",
    "source",
    required=False,
    help="Source as host:jail (remote primary) or localhost:snapshot (local snapshot files).",
)
@click.option("--to", "target", required=False, help="Target replica as localhost:jail.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--force",
    is_flag=True,
    default=None,
    help="Destroy the target jail first if it already exists.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Print every step and command without changing anything.",
)
@click.option(
    "--skip-test",
    is_flag=True,
    default=None,
    help="Skip the end-to-end replication test and the status check.",
)
@click.option("--ssh-key", required=False, type=click.Path(), help="SSH identity file for the source host.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--report-file",
    required=False,
    type=click.Path(),
    help="Write a JSON run report to this path (not written in dry-run mode).",
)
def main(source, target, config, force, dry_run, skip_test, ssh_key, verbose, log_file, report_file):
    """Create a MySQL replica jail from a ZFS snapshot of a primary jail."""
    logger = logging.getLogger("jailreplica")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ReplicaError as exc:
        raise click.ClickException(str(exc)) from exc

    source = _resolve_option(source, config_values, "from")
    target = _resolve_option(target, config_values, "to")
    force = bool(_resolve_option(force, config_values, "force", default=False))
    dry_run = bool(_resolve_option(dry_run, config_values, "dry_run", default=False))
    skip_test = bool(_resolve_option(skip_test, config_values, "skip_test", default=False))
    ssh_key = _resolve_option(ssh_key, config_values, "ssh_key")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    log_dir = config_values.get("log_dir")
    report_file = _resolve_option(report_file, config_values, "report_file")

    if not source:
        raise click.ClickException("Missing required option '--from' (or provide it in config).")
    if not target:
        raise click.ClickException("Missing required option '--to' (or provide it in config).")

    try:
        source_location = SourceLocation.parse(source, "--from")
        target_location = SourceLocation.parse(target, "--to")
        if not target_location.is_local:
            raise ReplicaError(actionable_error("target_not_local", value=target))

        settings = config_loader.build_settings(
            config_values,
            replication_password=config_values.get("replication_password") or os.environ.get(PASSWORD_ENV_VAR),
        )
    except ReplicaError as exc:
        raise click.ClickException(str(exc)) from exc

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if not log_file and log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = _run_log_path(log_dir, target_location.name)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    request = ReplicationRequest(
        source=source_location,
        target=target_location.name,
        force=force,
        dry_run=dry_run,
        skip_verification=skip_test,
        ssh_identity=ssh_key,
    )
    replicator = Replicator(request=request, settings=settings, report_file=report_file)

    raise SystemExit(replicator.run())


if __name__ == "__main__":
    main()
