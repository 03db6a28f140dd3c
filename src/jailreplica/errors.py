"""Domain errors for jailreplica."""


class ReplicaError(RuntimeError):
    """Raised when provisioning cannot continue safely."""


class ValidationError(ReplicaError):
    """Bad or missing command-line/configuration input."""


class TargetExistsError(ReplicaError):
    """The target jail already exists and --force was not given."""


class CommandFailed(ReplicaError):
    """A local or remote command returned a non-zero exit code."""

    def __init__(self, message: str, cmd=None, returncode: int = 1, stderr: str = ""):
        super().__init__(message)
        self.cmd = list(cmd or [])
        self.returncode = returncode
        self.stderr = stderr


class SnapshotNotFoundError(ReplicaError):
    pass


class RootMissingError(ReplicaError):
    pass


class MetadataExtractionError(ReplicaError):
    """Binlog coordinates could not be read from the source database."""


class MetadataFileMissingError(ReplicaError):
    pass


class MetadataIncompleteError(ReplicaError):
    pass


class ResourceExhaustedError(ReplicaError):
    """No free IP suffix or server-id is left in the allocation range."""


class PoolLockTimeout(ReplicaError):
    pass


class ConfigNotFoundError(ReplicaError):
    pass


class ConfigParseError(ReplicaError):
    pass


class ReplicationProbeFailed(ReplicaError):
    pass


class ReplicaStatusUnhealthy(ReplicaError):
    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report
