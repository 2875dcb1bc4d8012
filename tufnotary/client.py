# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Clients for the notary trust data API and the registry manifest API.

Both clients only build URLs and interpret responses; network IO is done by a
``FetcherInterface`` implementation.
"""

import json
import logging
from typing import List, Optional, Tuple

from securesystemslib import hash as sslib_hash
from urllib3 import encode_multipart_formdata

from tufnotary.api.exceptions import DownloadHTTPError, RepositoryError
from tufnotary.api.metadata import Key
from tufnotary.fetcher import FetcherInterface

logger = logging.getLogger(__name__)

MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"


class NotaryClient:
    """Access to the trust data of one repository on a notary server.

    Args:
        fetcher: Network implementation.
        base_url: notary server URL, e.g. "https://notary.docker.io".
        gun: Globally unique name of the repository.
        max_length: Upper bound for downloaded metadata and keys.
    """

    def __init__(
        self,
        fetcher: FetcherInterface,
        base_url: str,
        gun: str,
        max_length: int = 5000000,
    ):
        self._fetcher = fetcher
        self.gun = gun
        self.max_length = max_length
        self.url = f"{base_url.rstrip('/')}/v2/{gun}/_trust/tuf/"

    def get_metadata(self, role: str) -> Optional[bytes]:
        """Return the current metadata of ``role``, or None if there is none.

        Raises:
            DownloadError: Any failure other than "not found".
        """
        try:
            return self._fetcher.download_bytes(
                f"{self.url}{role}.json", self.max_length
            )
        except DownloadHTTPError as e:
            if e.status_code != 404:
                raise
            logger.debug("No %s metadata for %s", role, self.gun)
            return None

    def get_key(self, role: str) -> Key:
        """Return the server managed public key of ``role``.

        Raises:
            DownloadError: The key cannot be fetched (including "not found").
            RepositoryError: The key is not a valid key record.
        """
        data = self._fetcher.download_bytes(
            f"{self.url}{role}.key", self.max_length
        )
        try:
            key = Key.from_dict("", json.loads(data.decode("utf-8")))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RepositoryError(f"Invalid {role} key from server") from e
        key.keyid = key.compute_keyid()
        logger.debug("Fetched %s key %s", role, key.keyid)
        return key

    def delete_trust_data(self) -> None:
        """Delete all trust data of the repository.

        A repository without trust data is not an error.
        """
        try:
            self._fetcher.delete(self.url)
        except DownloadHTTPError as e:
            if e.status_code != 404:
                raise
        logger.info("Deleted trust data for %s", self.gun)

    def publish(self, parts: List[Tuple[str, bytes]]) -> None:
        """Upload signed metadata in a single multipart request.

        The multipart boundary is the SHA-256 of the payloads so the request
        body is reproducible for identical uploads.

        Args:
            parts: (role name, signed metadata bytes) tuples in upload order.
        """
        boundary = multipart_boundary([data for _, data in parts])
        fields = [
            ("files", (role, data, "application/octet-stream"))
            for role, data in parts
        ]
        body, content_type = encode_multipart_formdata(
            fields, boundary=boundary
        )
        self._fetcher.upload(self.url, body, content_type)
        logger.info(
            "Published %s for %s", ", ".join(r for r, _ in parts), self.gun
        )


def multipart_boundary(payloads: List[bytes]) -> str:
    """Return the hex SHA-256 over the concatenated payloads."""
    digest = sslib_hash.digest("sha256")
    for payload in payloads:
        digest.update(payload)
    return digest.hexdigest()


class RegistryClient:
    """Fetch image manifests from a registry.

    Args:
        fetcher: Network implementation.
        base_url: Registry URL, e.g. "https://registry-1.docker.io".
        max_length: Upper bound for downloaded manifests.
    """

    def __init__(
        self,
        fetcher: FetcherInterface,
        base_url: str,
        max_length: int = 4000000,
    ):
        self._fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.max_length = max_length

    def get_manifest(self, repository: str, tag: str) -> bytes:
        """Return the raw schema 2 manifest of ``repository:tag``.

        Raises:
            DownloadError: The manifest cannot be fetched.
        """
        url = f"{self.base_url}/v2/{repository}/manifests/{tag}"
        return self._fetcher.download_bytes(
            url, self.max_length, headers={"Accept": MANIFEST_V2}
        )


def registry_repository(gun: str) -> str:
    """Return the registry repository name for ``gun``.

    A leading registry host ("docker.io/", "localhost:5000/") is removed.
    Docker Hub official images live in the "library" namespace.
    """
    first, sep, rest = gun.partition("/")
    if not sep or not ("." in first or ":" in first or first == "localhost"):
        return gun
    if first == "docker.io" and "/" not in rest:
        return f"library/{rest}"
    return rest
