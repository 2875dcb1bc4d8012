# Copyright New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""
Define exceptions used by tufnotary.
The names chosen for exception classes should end in 'Error' except where
there is a good reason not to, and provide that reason in those cases.
"""


#### Repository errors ####


class RepositoryError(Exception):
    """An error with a repository's state, such as malformed metadata.

    It covers all exceptions that come from the trust data side when
    looking from the perspective of the publisher.
    """


class UnsignedMetadataError(RepositoryError):
    """An error about metadata that could not be signed."""


class FormatError(RepositoryError):
    """Input or trust data is not in a format that can be processed."""


class DigestFileError(FormatError):
    """A digest file line cannot be parsed.

    Args:
        message: Description of the problem
        lineno: 1-based line number of the offending line
    """

    def __init__(self, message: str, lineno: int):
        super().__init__(f"line {lineno}: {message}")
        self.lineno = lineno


class ManifestFormatError(FormatError):
    """An image manifest is not a schema version 2 manifest."""


class UnsupportedKeyTypeError(FormatError):
    """A key is of a type that cannot be used where it was found."""


#### Download Errors ####


class DownloadError(Exception):
    """An error occurred while talking to the notary or registry server."""


class SlowRetrievalError(DownloadError):
    """Indicate that a request took an unreasonably long time."""


class DownloadHTTPError(DownloadError):
    """
    Returned by FetcherInterface implementations for HTTP errors.

    Args:
        message: The HTTP error messsage
        status_code: The HTTP status code
    """

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


#### Usage Errors ####


class UsageError(Exception):
    """Arguments or modes were combined in an unsupported way."""
