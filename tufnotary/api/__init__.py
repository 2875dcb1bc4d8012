# Copyright New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Public API for ``tufnotary.api``."""

from .metadata import (
    TOP_LEVEL_ROLE_NAMES,
    Key,
    Metadata,
    Role,
    Root,
    Signed,
    TargetFile,
    Targets,
)

from .exceptions import (
    DigestFileError,
    DownloadError,
    DownloadHTTPError,
    FormatError,
    ManifestFormatError,
    RepositoryError,
    SlowRetrievalError,
    UnsignedMetadataError,
    UnsupportedKeyTypeError,
    UsageError,
)

__all__ = [
    "TOP_LEVEL_ROLE_NAMES",
    DigestFileError.__name__,
    DownloadError.__name__,
    DownloadHTTPError.__name__,
    FormatError.__name__,
    Key.__name__,
    ManifestFormatError.__name__,
    Metadata.__name__,
    RepositoryError.__name__,
    Role.__name__,
    Root.__name__,
    Signed.__name__,
    SlowRetrievalError.__name__,
    TargetFile.__name__,
    Targets.__name__,
    UnsignedMetadataError.__name__,
    UnsupportedKeyTypeError.__name__,
    UsageError.__name__,
]
