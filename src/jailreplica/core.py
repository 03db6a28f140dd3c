import logging
import re
import uuid
from dataclasses import asdict
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape

from .errors import (
    MetadataFileMissingError,
    ReplicaError,
    ReplicaStatusUnhealthy,
    TargetExistsError,
    ValidationError,
)
from .errors_catalog import actionable_error
from .models import (
    ReplicationMetadata,
    ReplicationRequest,
    ReplicationSettings,
    ReplicationState,
    SnapshotRecord,
)
from .services.allocator import PoolLock, ResourceAllocator
from .services.certificates import CertificateProvisioner
from .services.command_runner import CommandRunner
from .services.filesystem import FileSystemService
from .services.jail_config import JailConfigurator
from .services.jail_runtime import JailRuntimeService
from .services.manifest import ManifestService
from .services.metadata import load_metadata
from .services.mysql_config import MySqlConfigurator
from .services.remote import SshTransport
from .services.snapshot import SnapshotManager
from .services.verifier import ReplicationVerifier
from .strategies import build_snapshot_source

console = Console()
logger = logging.getLogger("jailreplica")

JAIL_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

STATE_ORDER = [
    ReplicationState.REQUESTED,
    ReplicationState.JAIL_CHECKED,
    ReplicationState.SNAPSHOT_READY,
    ReplicationState.CONTAINER_CONFIGURED,
    ReplicationState.CONTAINER_RUNNING,
    ReplicationState.CERTIFICATES_TRANSFERRED,
    ReplicationState.DATABASE_CONFIGURED,
    ReplicationState.VERIFIED,
]


class Replicator:
    """Provisions one MySQL replica jail from a snapshot of its source."""

    def __init__(
        self,
        request: ReplicationRequest,
        settings: Optional[ReplicationSettings] = None,
        report_file: Optional[str] = None,
        command_runner: Optional[CommandRunner] = None,
    ):
        self.request = request
        self.settings = settings or ReplicationSettings()
        self.dry_run = request.dry_run
        self.run_id = uuid.uuid4().hex[:10]
        self.state = ReplicationState.REQUESTED
        self.snapshot: Optional[SnapshotRecord] = None
        self.metadata: Optional[ReplicationMetadata] = None
        self.current_step_name: Optional[str] = None

        self.command_runner = command_runner or CommandRunner(logger=logger, console=console, dry_run=self.dry_run)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.transport = SshTransport(self.command_runner, ssh_key=request.ssh_identity)
        self.jail_runtime = JailRuntimeService(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
            settings=self.settings,
        )
        self.allocator = ResourceAllocator(logger=logger, settings=self.settings)
        self.pool_lock = PoolLock(
            self.settings.lock_file,
            logger=logger,
            timeout=self.settings.lock_timeout_seconds,
        )
        self.snapshots = SnapshotManager(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
            transport=self.transport,
            jail_runtime=self.jail_runtime,
            settings=self.settings,
        )
        self.jail_configurator = JailConfigurator(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            allocator=self.allocator,
            jail_runtime=self.jail_runtime,
            settings=self.settings,
            dry_run=self.dry_run,
        )
        self.certificates = CertificateProvisioner(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
            transport=self.transport,
            jail_runtime=self.jail_runtime,
            settings=self.settings,
        )
        self.mysql_configurator = MySqlConfigurator(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            allocator=self.allocator,
            jail_runtime=self.jail_runtime,
            settings=self.settings,
            dry_run=self.dry_run,
        )
        self.verifier = ReplicationVerifier(
            logger=logger,
            console=console,
            transport=self.transport,
            jail_runtime=self.jail_runtime,
            settings=self.settings,
            dry_run=self.dry_run,
        )
        self.snapshot_source = build_snapshot_source(request, self.snapshots, self.certificates)
        self.manifest_service = ManifestService(
            manifest_file=report_file,
            logger=logger,
            enabled=not self.dry_run,
        )

    def _build_manifest_request(self) -> Dict[str, Any]:
        request = asdict(self.request)
        request["source"] = str(self.request.source)
        return request

    def _validate_request(self):
        for option, name in (("--from", self.request.source.name), ("--to", self.request.target)):
            if not JAIL_NAME.match(name):
                raise ValidationError(
                    actionable_error("invalid_location", option=option, value=name)
                )
        if not self.dry_run and not self.settings.replication_password:
            raise ValidationError(actionable_error("missing_password"))

    def _advance(self, state: ReplicationState):
        """Moves the run forward; states are never revisited within a run."""
        if STATE_ORDER.index(state) <= STATE_ORDER.index(self.state):
            raise ReplicaError(f"Invalid state transition: {self.state.value} -> {state.value}")
        self.state = state
        self.manifest_service.record_state(state.value)
        logger.debug("State: %s", state.value)

    def _run_step(self, name: str, callback, *args, **kwargs):
        self.manifest_service.step_started(name)
        self.current_step_name = name

        try:
            result = callback(*args, **kwargs)
        except Exception as exc:
            self.manifest_service.step_finished(name, "failed", error=str(exc))
            raise

        self.manifest_service.step_finished(name, "success")
        self.current_step_name = None
        return result

    def check_target_jail(self):
        target = self.request.target
        if not self.jail_runtime.exists(target):
            logger.info("Jail '%s' does not exist yet.", target)
            return
        if not self.request.force:
            raise TargetExistsError(actionable_error("target_exists", jail=target))
        console.print(f"[yellow]Jail '{target}' exists. Destroying it due to --force...[/yellow]")
        self.jail_runtime.destroy(target)

    def prepare_snapshot(self) -> SnapshotRecord:
        record = self.snapshot_source.prepare_snapshot()
        self.snapshot = record
        self.manifest_service.set_snapshot(record)
        return record

    def configure_jail(self):
        self.jail_runtime.assert_root_exists(self.request.target)
        return self.jail_configurator.configure(self.request.target)

    def start_jail(self):
        self.jail_runtime.start(self.request.target)

    def transfer_certificates(self):
        self.snapshot_source.transfer_certificates()

    def load_snapshot_metadata(self) -> ReplicationMetadata:
        path = self.snapshot.metadata_file
        try:
            metadata = load_metadata(path)
        except MetadataFileMissingError:
            if not self.dry_run:
                raise
            # nothing was copied in dry-run; fall back to what the probe read
            metadata = self.snapshot.metadata or ReplicationMetadata(
                binlog_file="[dry-run]",
                binlog_position=0,
                source_host=self.request.source.host,
                source_container=self.request.source.name,
            )
            logger.info("[DRY-RUN] Metadata file %s not present; using %s", path, metadata)

        console.print(
            f"[cyan]Replicating from {escape(metadata.source_host)} ({escape(metadata.source_container)}) "
            f"at {escape(metadata.binlog_file)}:{metadata.binlog_position}[/cyan]"
        )
        self.metadata = metadata
        self.manifest_service.set_metadata(metadata)
        return metadata

    def configure_database(self) -> str:
        return self.mysql_configurator.configure(self.request.target, self.snapshot.name, self.metadata)

    def verify_replication(self):
        skip = self.request.skip_verification
        self.verifier.probe_end_to_end(
            self.snapshot_source.probe_host(self.metadata),
            self.metadata.source_container,
            self.request.target,
            skip=skip,
        )
        report = self.verifier.check_status(self.request.target, skip=skip)
        if report is not None and not report.healthy:
            raise ReplicaStatusUnhealthy(
                actionable_error(
                    "replica_status_unhealthy",
                    jail=self.request.target,
                    io=report.io_running,
                    sql=report.sql_running,
                    ssl=report.ssl_allowed,
                ),
                report=report,
            )
        return report

    def run(self) -> int:
        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            console.print(
                f"[bold blue]Creating replica '{self.request.target}' from {self.request.source}[/bold blue]"
            )
            if self.dry_run:
                console.print("[yellow]Dry-run mode: no changes will be made.[/yellow]")
            logger.info("Starting jailreplica run %s", self.run_id)

            self._validate_request()
            self.manifest_service.start_run(run_id=self.run_id, request=self._build_manifest_request())

            if not self.dry_run:
                self.pool_lock.acquire()

            self._run_step("check_target_jail", self.check_target_jail)
            self._advance(ReplicationState.JAIL_CHECKED)

            self._run_step("prepare_snapshot", self.prepare_snapshot)
            self._advance(ReplicationState.SNAPSHOT_READY)

            self._run_step("configure_jail", self.configure_jail)
            self._advance(ReplicationState.CONTAINER_CONFIGURED)

            self._run_step("start_jail", self.start_jail)
            self._advance(ReplicationState.CONTAINER_RUNNING)

            self._run_step("transfer_certificates", self.transfer_certificates)
            self._advance(ReplicationState.CERTIFICATES_TRANSFERRED)

            self._run_step("load_metadata", self.load_snapshot_metadata)
            self._run_step("configure_database", self.configure_database)
            self._advance(ReplicationState.DATABASE_CONFIGURED)

            self._run_step("verify_replication", self.verify_replication)
            self._advance(ReplicationState.VERIFIED)

            console.print(
                f"[bold green]Replica jail '{self.request.target}' created and configured.[/bold green]"
            )
            logger.info("Replica '%s' provisioned from %s", self.request.target, self.request.source)
            manifest_status = "success"
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            self.state = ReplicationState.FAILED
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            return exit_code
        except ReplicaError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            self.state = ReplicationState.FAILED
            manifest_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            self.state = ReplicationState.FAILED
            manifest_error = str(exc)
            return exit_code
        finally:
            self.pool_lock.release()
            if self.state is ReplicationState.FAILED:
                self.manifest_service.record_state(self.state.value)
                if self.current_step_name:
                    logger.info("Failed during step: %s", self.current_step_name)
            self.manifest_service.finalize(manifest_status, error=manifest_error)
