"""Snapshot metadata file format.

A metadata file holds four newline-separated values in a fixed order:
binlog file, binlog position, source host and source container name.
Blank lines are ignored when reading.
"""

import os
from typing import List

from jailreplica.errors import MetadataFileMissingError, MetadataIncompleteError
from jailreplica.models import ReplicationMetadata

FIELD_COUNT = 4


def format_metadata(metadata: ReplicationMetadata) -> str:
    values = [
        metadata.binlog_file,
        str(metadata.binlog_position),
        metadata.source_host,
        metadata.source_container,
    ]
    return "\n".join(values) + "\n"


def parse_metadata(content: str, source: str = "<metadata>") -> ReplicationMetadata:
    lines: List[str] = [line.strip() for line in content.splitlines() if line.strip()]
    if len(lines) < FIELD_COUNT:
        raise MetadataIncompleteError(
            f"Metadata file {source} must contain {FIELD_COUNT} lines "
            "(binlog file, binlog position, source host, source jail); "
            f"found {len(lines)}."
        )

    binlog_file, position_text, source_host, source_container = lines[:FIELD_COUNT]
    if not position_text.isdigit():
        raise MetadataIncompleteError(
            f"Metadata file {source} has a non-numeric binlog position: {position_text!r}"
        )

    return ReplicationMetadata(
        binlog_file=binlog_file,
        binlog_position=int(position_text),
        source_host=source_host,
        source_container=source_container,
    )


def load_metadata(path: str) -> ReplicationMetadata:
    if not os.path.exists(path):
        raise MetadataFileMissingError(f"Meta file not found at: {path}")
    with open(path, "r", encoding="utf-8") as file_obj:
        return parse_metadata(file_obj.read(), source=path)
