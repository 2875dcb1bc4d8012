# Copyright 2021-2022 python-tuf contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Target set construction from digest files or registry tags"""

import json
import logging
import sys
from typing import Dict, Iterable, List, Optional

from tufnotary.api.exceptions import (
    DigestFileError,
    ManifestFormatError,
    UsageError,
)
from tufnotary.api.metadata import TargetFile
from tufnotary.client import RegistryClient

logger = logging.getLogger(__name__)

TargetSet = Dict[str, TargetFile]


def parse_digest_file(lines: Iterable[str]) -> TargetSet:
    """Parse digest file lines into a target set.

    Each line is ``<algorithm>:<hex digest> <length> <name>``. Blank lines and
    lines starting with "#" are ignored. A name may appear once per hash
    algorithm, with the same length each time.

    Raises:
        DigestFileError: A line is malformed.
    """
    targets: TargetSet = {}
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        fields = line.split()
        if len(fields) != 3:
            raise DigestFileError(
                "expected '<algorithm>:<digest> <length> <name>'", lineno
            )
        digest, length_str, name = fields

        algorithm, sep, hexdigest = digest.partition(":")
        if not sep:
            raise DigestFileError(f"missing algorithm in '{digest}'", lineno)
        if not length_str.isdigit():
            raise DigestFileError(f"invalid length '{length_str}'", lineno)

        try:
            target = TargetFile.from_digest(
                name, algorithm.lower(), hexdigest, int(length_str)
            )
        except ValueError as e:
            raise DigestFileError(str(e), lineno) from e

        existing = targets.get(name)
        if existing is None:
            targets[name] = target
            continue
        if existing.length != target.length:
            raise DigestFileError(f"conflicting length for '{name}'", lineno)
        if algorithm.lower() in existing.hashes:
            raise DigestFileError(
                f"duplicate {algorithm} digest for '{name}'", lineno
            )
        existing.hashes.update(target.hashes)

    logger.debug("Parsed %d targets from digest file", len(targets))
    return targets


def load_digest_file(path: str) -> TargetSet:
    """Read and parse a digest file, "-" reads stdin.

    Raises:
        OSError: The file cannot be read.
        DigestFileError: A line is malformed.
    """
    if path == "-":
        return parse_digest_file(sys.stdin)

    with open(path, encoding="utf-8") as f:
        return parse_digest_file(f)


def targets_from_tags(
    registry: RegistryClient, repository: str, tags: List[str]
) -> TargetSet:
    """Build a target set from the schema 2 manifests of ``tags``.

    Raises:
        DownloadError: A manifest cannot be fetched.
        ManifestFormatError: A manifest is not a schema version 2 manifest.
    """
    targets: TargetSet = {}
    for tag in tags:
        data = registry.get_manifest(repository, tag)
        try:
            manifest = json.loads(data.decode("utf-8"))
        except ValueError as e:
            raise ManifestFormatError(f"{repository}:{tag}: not JSON") from e

        if not isinstance(manifest, dict):
            raise ManifestFormatError(f"{repository}:{tag}: not a manifest")
        schema_version = manifest.get("schemaVersion")
        if schema_version != 2:
            raise ManifestFormatError(
                f"{repository}:{tag}: unsupported schemaVersion "
                f"{schema_version}"
            )

        targets[tag] = TargetFile.from_data(tag, data)
        logger.debug(
            "%s:%s is sha256:%s", repository, tag, targets[tag].get_hexdigest()
        )

    return targets


def build_target_set(
    digest_file: Optional[str] = None,
    tags: Optional[List[str]] = None,
    registry: Optional[RegistryClient] = None,
    repository: Optional[str] = None,
) -> TargetSet:
    """Build a target set from exactly one of ``digest_file`` and ``tags``.

    Raises:
        UsageError: Neither or both input modes were given, or tags were given
            without a registry and repository.
    """
    if (digest_file is None) == (not tags):
        raise UsageError("Exactly one of digest file or tags is required")

    if digest_file is not None:
        return load_digest_file(digest_file)

    if registry is None or repository is None:
        raise UsageError("Tags require a registry and a repository")
    assert tags is not None
    return targets_from_tags(registry, repository, tags)
