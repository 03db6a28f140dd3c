import subprocess
from dataclasses import dataclass
from typing import List, Optional

import pytest

from jailreplica.errors import CommandFailed
from jailreplica.models import ReplicationSettings


class DummyLogger:
    def __init__(self):
        self.messages = []

    def _record(self, level, message, *args, **_kwargs):
        self.messages.append((level, message % args if args else message))

    def debug(self, message, *args, **kwargs):
        self._record("debug", message, *args, **kwargs)

    def info(self, message, *args, **kwargs):
        self._record("info", message, *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self._record("warning", message, *args, **kwargs)

    def error(self, message, *args, **kwargs):
        self._record("error", message, *args, **kwargs)

    def exception(self, message, *args, **kwargs):
        self._record("exception", message, *args, **kwargs)


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))


@dataclass
class RecordedCall:
    cmd: List[str]
    description: Optional[str]
    input_text: Optional[str]
    stdin_path: Optional[str]
    read_only: bool

    @property
    def joined(self) -> str:
        return " ".join(self.cmd)


class RecordingRunner:
    """Stands in for CommandRunner; records every call and replays scripted output.

    Responses are matched by substring against the space-joined command, first
    registered match wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.calls: List[RecordedCall] = []
        self._responses = []

    def on(self, fragment: str, stdout: str = "", returncode: int = 0, stderr: str = ""):
        self._responses.append((fragment, stdout, returncode, stderr))
        return self

    def run(
        self,
        cmd,
        description=None,
        check=True,
        capture_output=True,
        input_text=None,
        stdin_path=None,
        read_only=False,
        timeout=None,
    ):
        call = RecordedCall(list(cmd), description, input_text, stdin_path, read_only)
        self.calls.append(call)

        if self.dry_run and not read_only:
            return subprocess.CompletedProcess(cmd, 0, stdout="[DRY-RUN] Command not executed.", stderr="")

        for fragment, stdout, returncode, stderr in self._responses:
            if fragment in call.joined:
                if returncode != 0 and check:
                    raise CommandFailed(
                        f"Command failed ({returncode}): {call.joined}",
                        cmd=cmd,
                        returncode=returncode,
                        stderr=stderr,
                    )
                return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    @property
    def commands(self) -> List[str]:
        return [call.joined for call in self.calls]

    def find(self, fragment: str) -> List[RecordedCall]:
        return [call for call in self.calls if fragment in call.joined]


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def console():
    return DummyConsole()


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def settings(tmp_path):
    jails_root = tmp_path / "jails"
    backups = tmp_path / "backups"
    jails_root.mkdir()
    backups.mkdir()
    return ReplicationSettings(
        jails_root=str(jails_root),
        snapshot_backup_dir=str(backups),
        cert_staging_dir=str(tmp_path / "cert-staging"),
        local_cert_source_dir=str(tmp_path / "local-certs"),
        lock_file=str(tmp_path / "jailreplica.lock"),
        lock_timeout_seconds=0.2,
        settle_seconds=0,
        replication_password="s3cret",
        use_sudo=False,
    )


@pytest.fixture
def dry_runner():
    return RecordingRunner(dry_run=True)
