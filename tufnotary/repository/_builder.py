# Copyright 2021-2022 python-tuf contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Root and targets metadata construction"""

import logging
from datetime import datetime
from typing import Dict, Mapping, Optional

from tufnotary.api.metadata import (
    Key,
    Metadata,
    Role,
    Root,
    TargetFile,
    Targets,
)
from tufnotary.repository._continuity import Continuity, ResolvedKeys

logger = logging.getLogger(__name__)


def build_root(resolved: ResolvedKeys, expires: datetime) -> Metadata[Root]:
    """Build unsigned root metadata binding each role to its resolved key.

    The version follows the published root, if there is one.
    """
    keys: Dict[str, Key] = {}
    roles: Dict[str, Role] = {}
    for role, key in resolved.role_keys().items():
        keys[key.keyid] = key
        roles[role] = Role([key.keyid], 1)

    version = 1
    if resolved.prior_root is not None:
        version = resolved.prior_root.signed.version + 1

    logger.debug("Built root v%d (%s)", version, resolved.decision.name)
    return Metadata(Root(version, expires, keys, roles, False))


def merge_targets(
    target_set: Mapping[str, TargetFile],
    previous: Optional[Targets],
    add_only: bool,
) -> Dict[str, TargetFile]:
    """Return the targets to publish.

    In add-only mode published targets that are not in ``target_set`` are
    kept. Otherwise ``target_set`` replaces the published targets.
    """
    merged: Dict[str, TargetFile] = {}
    if add_only and previous is not None:
        merged.update(previous.targets)
        kept = set(previous.targets) - set(target_set)
        if kept:
            logger.debug("Keeping published targets %s", sorted(kept))

    merged.update(target_set)
    return merged


def build_targets(
    targets: Mapping[str, TargetFile],
    previous: Optional[Targets],
    expires: datetime,
) -> Metadata[Targets]:
    """Build unsigned targets metadata, one version above ``previous``."""
    version = 1 if previous is None else previous.version + 1
    logger.debug("Built targets v%d with %d targets", version, len(targets))
    return Metadata(Targets(version, expires, dict(targets)))


def is_unchanged(
    decision: Continuity,
    targets: Mapping[str, TargetFile],
    previous: Optional[Targets],
) -> bool:
    """Return True if publishing would change nothing.

    That is the case when the root is reused and the published targets have
    the same names, lengths and hashes as ``targets``.
    """
    if decision != Continuity.REUSE or previous is None:
        return False

    def _content(files: Mapping[str, TargetFile]) -> Dict[str, tuple]:
        return {name: (f.length, f.hashes) for name, f in files.items()}

    return _content(targets) == _content(previous.targets)
