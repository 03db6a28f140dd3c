"""
jailreplica - MySQL replica provisioning for iocage jails
"""

__version__ = "0.1.0"

from .core import Replicator
from .errors import ReplicaError

__all__ = ["Replicator", "ReplicaError"]
