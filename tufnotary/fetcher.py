# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Provides an interface for network IO abstraction."""

# Imports
import abc
import logging
from typing import Dict, Iterator, Optional

from tufnotary.api import exceptions

logger = logging.getLogger(__name__)


# Classes
class FetcherInterface(metaclass=abc.ABCMeta):
    """Defines an interface for abstract network requests.

    By providing a concrete implementation of the abstract interface,
    users of the framework can plug-in their preferred/customized
    network stack.

    Implementations of FetcherInterface only need to implement ``_request()``.
    The public API of the class is already implemented.
    """

    @abc.abstractmethod
    def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
    ) -> Iterator[bytes]:
        """Send a HTTP/HTTPS request and return the response body.

        Implementations must raise ``DownloadHTTPError`` if they receive
        an HTTP error code.

        Implementations may raise any errors but the ones that are not
        ``DownloadErrors`` will be wrapped in a ``DownloadError`` by
        ``request()``.

        Args:
            method: HTTP method, e.g. "GET".
            url: URL string that represents a file location.
            headers: Extra request headers.
            data: Request body.

        Raises:
            exceptions.DownloadHTTPError: HTTP error code was received.

        Returns:
            Bytes iterator
        """
        raise NotImplementedError  # pragma: no cover

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
    ) -> Iterator[bytes]:
        """Send a HTTP/HTTPS request and return the response body.

        Raises:
            exceptions.DownloadError: An error occurred during the request.
            exceptions.DownloadHTTPError: An HTTP error code was received.

        Returns:
            Bytes iterator
        """
        # Ensure that request() only raises DownloadErrors, regardless of the
        # fetcher implementation
        try:
            return self._request(method, url, headers, data)
        except exceptions.DownloadError as e:
            raise e
        except Exception as e:
            raise exceptions.DownloadError(f"Failed to {method} {url}") from e

    def download_bytes(
        self,
        url: str,
        max_length: int,
        headers: Optional[Dict[str, str]] = None,
    ) -> bytes:
        """Download bytes from given ``url``.

        Args:
            url: URL string that represents the location of the file.
            max_length: Upper bound of data size in bytes.
            headers: Extra request headers, e.g. "Accept".

        Raises:
            exceptions.DownloadError: An error occurred during download.
            exceptions.DownloadHTTPError: An HTTP error code was received.

        Returns:
            Content of the file in bytes.
        """
        logger.debug("Downloading: %s", url)

        data = b""
        for chunk in self.request("GET", url, headers):
            data += chunk
            if len(data) > max_length:
                raise exceptions.DownloadError(
                    f"Downloaded {len(data)} bytes exceeding"
                    f" the maximum allowed length of {max_length}"
                )

        logger.debug("Downloaded %d bytes", len(data))
        return data

    def delete(self, url: str) -> None:
        """Send a DELETE request to ``url``.

        Raises:
            exceptions.DownloadError: An error occurred during the request.
            exceptions.DownloadHTTPError: An HTTP error code was received.
        """
        logger.debug("Deleting: %s", url)
        for _ in self.request("DELETE", url):
            pass

    def upload(self, url: str, data: bytes, content_type: str) -> bytes:
        """POST ``data`` to ``url`` and return the response body.

        Raises:
            exceptions.DownloadError: An error occurred during the request.
            exceptions.DownloadHTTPError: An HTTP error code was received.
        """
        logger.debug("Uploading %d bytes: %s", len(data), url)
        headers = {"Content-Type": content_type}
        return b"".join(self.request("POST", url, headers, data))
