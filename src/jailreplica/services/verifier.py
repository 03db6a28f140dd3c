"""End-to-end and status checks for a freshly provisioned replica."""

import re
import time
import uuid
from datetime import datetime
from typing import Dict, Optional

from jailreplica.errors import ReplicationProbeFailed
from jailreplica.errors_catalog import actionable_error
from jailreplica.models import ReplicaStatusReport

STATUS_LINE = re.compile(r"^\s*(\w+):\s*(.*)$")


def parse_replica_status(output: str) -> ReplicaStatusReport:
    fields: Dict[str, str] = {}
    for line in (output or "").splitlines():
        match = STATUS_LINE.match(line)
        if match:
            fields[match.group(1)] = match.group(2).strip()
    return ReplicaStatusReport(fields=fields, raw=output or "")


class ReplicationVerifier:
    """Confirms that a replica actually receives writes from its source."""

    PROBE_DATABASE = "testdb"
    PROBE_TABLE = "ping"

    def __init__(self, logger, console, transport, jail_runtime, settings, dry_run: bool = False, sleep=time.sleep):
        self.logger = logger
        self.console = console
        self.transport = transport
        self.jail_runtime = jail_runtime
        self.settings = settings
        self.dry_run = dry_run
        self.sleep = sleep

    def _skipped(self, skip: bool, what: str) -> bool:
        if self.dry_run:
            self.console.print(f"[yellow][DRY-RUN] Skipping {what}.[/yellow]")
            self.logger.info("[DRY-RUN] Skipping %s.", what)
            return True
        if skip:
            self.console.print(f"[yellow][SKIP] {what.capitalize()} skipped due to --skip-test flag.[/yellow]")
            self.logger.warning("%s skipped due to --skip-test flag.", what.capitalize())
            return True
        return False

    @staticmethod
    def make_marker() -> str:
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        return f"replication check @ {stamp} {uuid.uuid4().hex[:8]}"

    def probe_end_to_end(
        self,
        master_host: str,
        master_jail: str,
        target_jail: str,
        skip: bool = False,
        marker: Optional[str] = None,
    ) -> bool:
        """Writes a marker row on the source and expects to read it on the replica.

        Returns ``False`` when the check was skipped.
        """
        if self._skipped(skip, "end-to-end replication test"):
            return False

        marker = marker or self.make_marker()
        table = f"{self.PROBE_DATABASE}.{self.PROBE_TABLE}"
        insert_sql = "\n".join(
            [
                f"CREATE DATABASE IF NOT EXISTS {self.PROBE_DATABASE};",
                f"CREATE TABLE IF NOT EXISTS {table} (msg VARCHAR(100));",
                f"INSERT INTO {table} (msg) VALUES ('{marker}');",
                "",
            ]
        )
        self.transport.run(
            master_host,
            self.jail_runtime.privileged(["iocage", "exec", master_jail, self.settings.mysql_bin_path]),
            description="Insert test row on primary",
            input_text=insert_sql,
        )

        self.logger.info("Waiting %.0fs for replication to apply the test row...", self.settings.settle_seconds)
        self.sleep(self.settings.settle_seconds)

        result = self.jail_runtime.exec(
            target_jail,
            [
                self.settings.mysql_bin_path,
                "-N",
                "-e",
                f"SELECT msg FROM {table} WHERE msg = '{marker}'",
            ],
            description="Verify replication row in replica jail",
            read_only=True,
        )
        if marker not in (result.stdout or ""):
            self.console.print(result.stdout or "<no rows>", markup=False)
            raise ReplicationProbeFailed(
                actionable_error("replication_probe_failed", marker=marker, jail=target_jail)
            )

        self.console.print("[green]End-to-end replication test passed.[/green]")
        self.logger.info("End-to-end replication test passed.")
        return True

    def check_status(self, target_jail: str, skip: bool = False) -> Optional[ReplicaStatusReport]:
        if self._skipped(skip, "replica status check"):
            return None

        result = self.jail_runtime.exec(
            target_jail,
            [self.settings.mysql_bin_path, "-e", "SHOW REPLICA STATUS\\G"],
            description="Check replication status",
            read_only=True,
        )
        report = parse_replica_status(result.stdout or "")

        self.logger.info("Replica_IO_Running: %s", report.io_running)
        self.logger.info("Replica_SQL_Running: %s", report.sql_running)
        self.logger.info("Source_SSL_Allowed: %s", report.ssl_allowed)

        if report.healthy:
            self.console.print("[green]Replica status check passed.[/green]")
        else:
            self.console.print("[red]Replica status check failed![/red]")
            self.console.print(report.raw, markup=False)
        return report
