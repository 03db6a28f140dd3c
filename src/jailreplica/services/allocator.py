"""Free-slot allocation of IP suffixes and MySQL server ids."""

import errno
import fcntl
import glob
import json
import os
import re
import time
from typing import Iterable, Optional, Set

from jailreplica import constants
from jailreplica.errors import PoolLockTimeout, ResourceExhaustedError
from jailreplica.errors_catalog import actionable_error

SERVER_ID_PATTERN = re.compile(r"^\s*server[-_]id\s*=\s*(\d+)", re.IGNORECASE | re.MULTILINE)


def first_free(used: Iterable[int], low: int, high: int, resource: str = "slot") -> int:
    """Returns the smallest integer in ``[low, high]`` that is not in ``used``."""
    used_set = set(used)
    for candidate in range(low, high + 1):
        if candidate not in used_set:
            return candidate
    raise ResourceExhaustedError(
        actionable_error("resource_exhausted", resource=resource, low=str(low), high=str(high))
    )


class ResourceAllocator:
    """Scans sibling jails for used IP suffixes and server ids.

    Allocation is read-then-decide; callers serialize it with :class:`PoolLock`
    until the chosen values are persisted.
    """

    def __init__(self, logger, settings):
        self.logger = logger
        self.settings = settings
        # "110.0.0.7" must not count as a "10.0.0" address
        self.ip_pattern = re.compile(r"(?<![\d.])" + re.escape(settings.subnet_prefix + ".") + r"(\d+)")

    def used_ip_suffixes(self) -> Set[int]:
        used: Set[int] = set()
        pattern = os.path.join(self.settings.jails_root, "*", "config.json")
        for path in sorted(glob.glob(pattern)):
            try:
                with open(path, "r", encoding="utf-8") as file_obj:
                    data = json.load(file_obj)
            except (OSError, ValueError) as exc:
                self.logger.warning("Skipping unreadable jail config %s: %s", path, exc)
                continue
            if not isinstance(data, dict):
                continue
            address = data.get("ip4_addr")
            if not isinstance(address, str):
                continue
            # iocage accepts a comma separated list of interface|address pairs
            for match in self.ip_pattern.finditer(address):
                used.add(int(match.group(1)))
        return used

    def used_server_ids(self) -> Set[int]:
        used: Set[int] = set()
        pattern = os.path.join(self.settings.jails_root, "*", "root", self.settings.mysql_config_relpath)
        for path in sorted(glob.glob(pattern)):
            try:
                with open(path, "r", encoding="utf-8", errors="ignore") as file_obj:
                    content = file_obj.read()
            except OSError as exc:
                self.logger.warning("Skipping unreadable MySQL config %s: %s", path, exc)
                continue
            match = SERVER_ID_PATTERN.search(content)
            if match:
                used.add(int(match.group(1)))
        return used

    def next_ip_suffix(self) -> int:
        low, high = constants.IP_SUFFIX_RANGE
        suffix = first_free(self.used_ip_suffixes(), low, high, resource="IP address")
        self.logger.info("Allocated IP suffix %s.%s", self.settings.subnet_prefix, suffix)
        return suffix

    def next_ip_address(self) -> str:
        suffix = self.next_ip_suffix()
        return f"{self.settings.network_interface}|{self.settings.subnet_prefix}.{suffix}/24"

    def next_server_id(self) -> int:
        low, high = constants.SERVER_ID_RANGE
        server_id = first_free(self.used_server_ids(), low, high, resource="server-id")
        self.logger.info("Allocated server-id %s", server_id)
        return server_id


class PoolLock:
    """Exclusive ``flock`` on the resource pool, held for a whole provisioning run."""

    def __init__(
        self,
        path: str,
        logger,
        timeout: float = constants.LOCK_TIMEOUT_SECONDS,
        poll_interval: float = constants.LOCK_POLL_SECONDS,
    ):
        self.path = path
        self.logger = logger
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._fd: Optional[int] = None

    def acquire(self):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        deadline = time.monotonic() + self.timeout
        waited = False

        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError as exc:
                if exc.errno not in (errno.EAGAIN, errno.EACCES):
                    os.close(fd)
                    raise
            if time.monotonic() >= deadline:
                os.close(fd)
                raise PoolLockTimeout(
                    actionable_error("pool_locked", path=self.path, seconds=str(self.timeout))
                )
            if not waited:
                self.logger.info("Waiting for resource pool lock %s...", self.path)
                waited = True
            time.sleep(self.poll_interval)

        self._fd = fd
        self.logger.debug("Acquired resource pool lock %s", self.path)

    def release(self):
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        self.logger.debug("Released resource pool lock %s", self.path)

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "PoolLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False
