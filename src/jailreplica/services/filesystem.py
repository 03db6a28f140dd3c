"""Filesystem helpers for jailreplica."""

import logging
import os
import tempfile

from rich.console import Console


class FileSystemService:
    """Encapsulates local file side effects on the jail host."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def read_text(self, path: str) -> str:
        with open(path, "r", encoding="utf-8") as file_obj:
            return file_obj.read()

    def write_text_atomic(self, path: str, content: str):
        """Replaces ``path`` in one rename, keeping its permission bits."""
        directory = os.path.dirname(path) or "."
        mode = None
        if os.path.exists(path):
            mode = os.stat(path).st_mode & 0o7777

        fd, temp_path = tempfile.mkstemp(prefix=".jailreplica-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
            if mode is not None:
                os.chmod(temp_path, mode)
            os.replace(temp_path, path)
        finally:
            if os.path.exists(temp_path):
                self.remove_file(temp_path)
        self.logger.debug("Wrote %s", path)

    def write_private_temp(self, content: str, prefix: str, suffix: str) -> str:
        fd, temp_path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
            file_obj.write(content)
        return temp_path

    def remove_file(self, path: str):
        try:
            os.remove(path)
            self.logger.debug("Removed file: %s", path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            message = f"Warning: Could not remove {path}: {exc}"
            self.console.print(f"[yellow]{message}[/yellow]")
            self.logger.warning(message)
