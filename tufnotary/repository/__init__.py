# Copyright 2021-2022 python-tuf contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Repository API: publishing trust data for a container image repository

The modules here decide how published trust data relates to the signing
identity, build root and targets metadata, and publish them to a notary
server. Targets can come from registry tags or a digest file.
"""

from tufnotary.repository._builder import (  # noqa: F401
    build_root,
    build_targets,
    is_unchanged,
    merge_targets,
)
from tufnotary.repository._continuity import (  # noqa: F401
    Continuity,
    KeyContinuityResolver,
    ResolvedKeys,
)
from tufnotary.repository._publisher import (  # noqa: F401
    Publisher,
    PublishResult,
)
from tufnotary.repository._targets import (  # noqa: F401
    TargetSet,
    build_target_set,
    load_digest_file,
    parse_digest_file,
    targets_from_tags,
)
