"""my.cnf rewriting, MySQL restart and replication setup for replica jails."""

import contextlib
import os
import re
from typing import Iterator, Pattern, Tuple

from jailreplica import constants
from jailreplica.errors import ConfigNotFoundError

MYSQLD_SECTION = re.compile(r"^\[mysqld\][ \t]*$", re.MULTILINE)
ANY_SECTION = re.compile(r"^[ \t]*\[[^\]\n]*\][ \t]*$", re.MULTILINE)
SERVER_ID_LINE = re.compile(r"^[ \t]*server[-_]id[ \t]*=.*$", re.IGNORECASE | re.MULTILINE)
SSL_CERT_LINE = re.compile(r"^[ \t]*ssl[-_]cert[ \t]*=.*$", re.IGNORECASE | re.MULTILINE)
SSL_KEY_LINE = re.compile(r"^[ \t]*ssl[-_]key[ \t]*=.*$", re.IGNORECASE | re.MULTILINE)
RELAY_LOG_LINE = re.compile(r"^[ \t]*relay[-_]log[ \t]*=", re.IGNORECASE | re.MULTILINE)


def ensure_mysqld_section(content: str) -> str:
    if MYSQLD_SECTION.search(content):
        return content
    return "[mysqld]\n" + content


def split_mysqld_section(content: str) -> Tuple[str, str, str]:
    """Splits ``content`` into (everything up to ``[mysqld]``, its body, the rest).

    The body runs from the end of the header line to the next section header.
    Only the first ``[mysqld]`` section is considered.
    """
    content = ensure_mysqld_section(content)
    header = MYSQLD_SECTION.search(content)
    start = header.end()
    next_header = ANY_SECTION.search(content, start)
    end = next_header.start() if next_header else len(content)
    return content[:start], content[start:end], content[end:]


def upsert_directive(body: str, pattern: Pattern, line: str) -> str:
    """Replaces the first matching directive in a section body and drops repeats.

    When no line matches, ``line`` goes first in the body, right under the header.
    """
    if not pattern.search(body):
        return f"\n{line}{body}"

    seen = {"count": 0}

    def replace(_match):
        seen["count"] += 1
        return line if seen["count"] == 1 else ""

    return pattern.sub(replace, body)


def mutate_mysql_config(content: str, server_id: int, cert_dir: str) -> str:
    """Applies the replica directives to the ``[mysqld]`` section of a my.cnf.

    Other sections (``[client]``, ``[mysqldump]``...) are left untouched. TLS
    paths and relay-log are idempotent; the result only differs between passes
    when a different ``server_id`` is supplied.
    """
    cert_dir = cert_dir.rstrip("/")
    before, body, after = split_mysqld_section(content)
    body = upsert_directive(body, SERVER_ID_LINE, f"server-id={server_id}")
    body = upsert_directive(body, SSL_CERT_LINE, f"ssl-cert={cert_dir}/{constants.CLIENT_CERT}")
    body = upsert_directive(body, SSL_KEY_LINE, f"ssl-key={cert_dir}/{constants.CLIENT_KEY}")
    if not RELAY_LOG_LINE.search(body):
        body = f"\nrelay-log=relay-log{body}"
    if after and not body.endswith("\n"):
        body += "\n"
    content = before + body + after
    if not content.endswith("\n"):
        content += "\n"
    return content


def sql_literal(value: str) -> str:
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def build_replication_script(metadata, settings) -> str:
    password = settings.replication_password or ""
    return "\n".join(
        [
            "STOP REPLICA;",
            "RESET REPLICA ALL;",
            "CHANGE MASTER TO",
            f"  MASTER_HOST={sql_literal(metadata.source_host)},",
            f"  MASTER_USER={sql_literal(settings.replication_user)},",
            f"  MASTER_PASSWORD={sql_literal(password)},",
            f"  MASTER_LOG_FILE={sql_literal(metadata.binlog_file)},",
            f"  MASTER_LOG_POS={int(metadata.binlog_position)},",
            "  MASTER_SSL=1,",
            f"  MASTER_SSL_CA={sql_literal(settings.jail_cert_path(constants.CA_CERT))},",
            f"  MASTER_SSL_CERT={sql_literal(settings.jail_cert_path(constants.CLIENT_CERT))},",
            f"  MASTER_SSL_KEY={sql_literal(settings.jail_cert_path(constants.CLIENT_KEY))};",
            "START REPLICA;",
            "SHOW REPLICA STATUS\\G",
            "",
        ]
    )


class MySqlConfigurator:
    """Turns the MySQL copy inside a received jail into a replica."""

    def __init__(
        self,
        logger,
        console,
        filesystem_service,
        allocator,
        jail_runtime,
        settings,
        dry_run: bool = False,
    ):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.allocator = allocator
        self.jail_runtime = jail_runtime
        self.settings = settings
        self.dry_run = dry_run

    def configure(self, target_jail: str, snapshot_name: str, metadata) -> str:
        self.logger.info("Configuring MySQL in '%s' from snapshot %s", target_jail, snapshot_name)
        self.update_config_file(target_jail)
        self.restart_with_new_uuid(target_jail)
        return self.inject_replication(target_jail, metadata)

    def update_config_file(self, target_jail: str):
        config_path = self.settings.mysql_config_path(target_jail)
        if self.dry_run:
            self.console.print(f"[yellow][DRY-RUN] Skipping my.cnf update: {config_path}[/yellow]")
            self.logger.info("[DRY-RUN] Skipping my.cnf update: %s", config_path)
            return
        if not os.path.isfile(config_path):
            raise ConfigNotFoundError(f"MySQL config not found: {config_path}")

        content = self.filesystem_service.read_text(config_path)
        server_id = self.allocator.next_server_id()
        updated = mutate_mysql_config(content, server_id, self.settings.cert_dir)
        self.filesystem_service.write_text_atomic(config_path, updated)
        self.console.print(f"[green]my.cnf updated with server-id={server_id}.[/green]")

    def restart_with_new_uuid(self, target_jail: str):
        service = self.settings.mysql_service
        self.jail_runtime.service(target_jail, service, "stop", description="Stop MySQL in replica jail")
        self.jail_runtime.exec(
            target_jail,
            ["rm", "-f", self.settings.mysql_auto_cnf],
            description="Delete auto.cnf to regenerate server UUID",
        )
        self.jail_runtime.service(target_jail, service, "start", description="Start MySQL in replica jail")

    @contextlib.contextmanager
    def _script_file(self, script: str) -> Iterator[str]:
        if self.dry_run:
            yield os.path.join("<tmp>", "replica_setup.sql")
            return
        path = self.filesystem_service.write_private_temp(script, prefix="replica_setup_", suffix=".sql")
        try:
            yield path
        finally:
            self.filesystem_service.remove_file(path)

    def inject_replication(self, target_jail: str, metadata) -> str:
        script = build_replication_script(metadata, self.settings)
        with self._script_file(script) as script_path:
            result = self.jail_runtime.exec(
                target_jail,
                [self.settings.mysql_bin_path],
                description="Configure replication on replica",
                stdin_path=script_path,
            )
        output = (result.stdout or "").strip()
        if output:
            self.logger.debug("Replication setup output:\n%s", output)
        return output
