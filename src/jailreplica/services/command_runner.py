"""Subprocess execution service for jailreplica."""

import shlex
import subprocess
from typing import List, Optional

from rich.markup import escape

from jailreplica.errors import CommandFailed


class CommandRunner:
    """Runs external commands with a consistent step trace and error handling.

    Commands are always argument vectors, never shell strings. In dry-run mode
    every mutating command is replaced by a logged no-op that returns
    ``DRY_RUN_OUTPUT``; commands flagged ``read_only`` still run.
    """

    DRY_RUN_OUTPUT = "[DRY-RUN] Command not executed."

    def __init__(self, logger, console, dry_run: bool = False, default_timeout: Optional[float] = None):
        self.logger = logger
        self.console = console
        self.dry_run = dry_run
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        description: Optional[str] = None,
        check: bool = True,
        capture_output: bool = True,
        input_text: Optional[str] = None,
        stdin_path: Optional[str] = None,
        read_only: bool = False,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = shlex.join(cmd)
        if description:
            self.console.print(f"[bold blue]>> {escape(description)}[/bold blue]")
            self.logger.info("[STEP] %s", description)
        self.console.print(f"[dim]$ {escape(cmd_str)}[/dim]")
        self.logger.debug("Executing: %s", cmd_str)

        if self.dry_run and not read_only:
            self.console.print(f"[yellow][DRY-RUN] Skipping: {escape(cmd_str)}[/yellow]")
            self.logger.info("[DRY-RUN] Skipping: %s", cmd_str)
            return subprocess.CompletedProcess(cmd, 0, stdout=self.DRY_RUN_OUTPUT, stderr="")

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            if stdin_path is not None:
                with open(stdin_path, "rb") as stdin_file:
                    result = subprocess.run(
                        cmd,
                        stdin=stdin_file,
                        capture_output=capture_output,
                        timeout=effective_timeout,
                    )
                result = self._decode(result)
            else:
                result = subprocess.run(
                    cmd,
                    input=input_text,
                    text=True,
                    capture_output=capture_output,
                    timeout=effective_timeout,
                )
        except FileNotFoundError as exc:
            if stdin_path is not None and exc.filename == stdin_path:
                raise CommandFailed(f"Input file not found: {stdin_path}", cmd=cmd) from exc
            raise CommandFailed(
                f"Required command not found: {cmd[0]}. Please install it and try again.",
                cmd=cmd,
                returncode=127,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandFailed(
                f"Command timed out after {effective_timeout}s: {cmd_str}", cmd=cmd
            ) from exc
        except OSError as exc:
            raise CommandFailed(f"Failed to execute command: {cmd_str}. {exc}", cmd=cmd) from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            self.console.print(f"[red][ERROR] {escape(message)}[/red]")
            raise CommandFailed(message, cmd=cmd, returncode=result.returncode, stderr=stderr)

        self.logger.warning(message)
        return result

    @staticmethod
    def _decode(result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        def to_text(value):
            if isinstance(value, bytes):
                return value.decode("utf-8", errors="replace")
            return value

        return subprocess.CompletedProcess(
            result.args,
            result.returncode,
            stdout=to_text(result.stdout),
            stderr=to_text(result.stderr),
        )
