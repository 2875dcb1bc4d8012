# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Test utility to simulate a notary server and a registry

NotarySimulator implements FetcherInterface so that NotaryClient and
RegistryClient in tests can use it as their network: no network connections
or file access happen, everything is served from memory.

Trust data of a single repository is served below "/v2/{gun}/_trust/tuf/".
Image manifests of any repository are served below "/v2/{name}/manifests/".

Example::

    sim = NotarySimulator("example.com/org/app")

    # published metadata can be set directly
    sim.set_metadata("root", root_md)

    # manifests can be added for registry clients
    sim.add_manifest("org/app", "latest", manifest_bytes)

    notary = sim.client()
    publisher = Publisher(notary, signer)
    publisher.publish(identity, target_set)

    # every request is recorded
    assert ("POST", sim.trust_path) in sim.requests
"""

import email.policy
import json
import logging
from dataclasses import dataclass
from email.parser import BytesParser
from typing import Dict, Iterator, List, Optional, Tuple
from urllib import parse

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from tufnotary.api.exceptions import DownloadHTTPError
from tufnotary.api.metadata import Key, Metadata
from tufnotary.client import NotaryClient
from tufnotary.fetcher import FetcherInterface

logger = logging.getLogger(__name__)


@dataclass
class Upload:
    """A received multipart upload."""

    content_type: str
    body: bytes
    files: List[Tuple[str, bytes]]


def generate_key_record() -> Key:
    """Return a raw ecdsa key record for a new P-256 key."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    public = private_key.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )
    return Key.from_public_bytes("ecdsa", public)


class NotarySimulator(FetcherInterface):
    """Simulates a notary server and a registry that can be used for testing.

    Args:
        gun: Globally unique name of the simulated trust repository.
    """

    def __init__(self, gun: str = "example.com/org/app") -> None:
        self.gun = gun
        self.trust_path = f"/v2/{gun}/_trust/tuf/"

        # role name -> published metadata bytes
        self.metadata: Dict[str, bytes] = {}

        # server managed keys, kept when trust data is deleted
        self.server_keys: Dict[str, Key] = {
            "snapshot": generate_key_record(),
            "timestamp": generate_key_record(),
        }

        # (repository, tag) -> manifest bytes
        self.manifests: Dict[Tuple[str, str], bytes] = {}

        # path -> status code to answer every request for path with
        self.errors: Dict[str, int] = {}

        # (method, path) of every request in order
        self.requests: List[Tuple[str, str]] = []
        self.request_headers: List[Dict[str, str]] = []
        self.uploads: List[Upload] = []

    @property
    def mutations(self) -> List[Tuple[str, str]]:
        """Requests that modify trust data."""
        return [r for r in self.requests if r[0] in ("DELETE", "POST")]

    def set_metadata(self, role: str, md: Metadata) -> None:
        """Make ``md`` the published metadata for ``role``."""
        self.metadata[role] = md.to_bytes()

    def get_published(self, role: str) -> Metadata:
        return Metadata.from_bytes(self.metadata[role])

    def add_manifest(self, repository: str, tag: str, data: bytes) -> None:
        self.manifests[(repository, tag)] = data

    def client(self) -> NotaryClient:
        """Return a NotaryClient for the simulated trust repository."""
        return NotaryClient(self, "https://notary.example.com", self.gun)

    def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
    ) -> Iterator[bytes]:
        path = parse.urlparse(url).path
        self.requests.append((method, path))
        self.request_headers.append(dict(headers or {}))
        logger.debug("%s %s", method, path)

        if path in self.errors:
            status = self.errors[path]
            raise DownloadHTTPError(f"Simulated {status} for {path}", status)

        if path.startswith(self.trust_path):
            name = path[len(self.trust_path) :]
            return iter([self._trust_request(method, name, headers, data)])

        if method == "GET" and "/manifests/" in path:
            repository, _, tag = path[len("/v2/") :].partition("/manifests/")
            manifest = self.manifests.get((repository, tag))
            if manifest is None:
                raise DownloadHTTPError(f"No manifest {repository}:{tag}", 404)
            return iter([manifest])

        raise DownloadHTTPError(f"Unknown path '{path}'", 404)

    def _trust_request(
        self,
        method: str,
        name: str,
        headers: Optional[Dict[str, str]],
        data: Optional[bytes],
    ) -> bytes:
        if method == "GET" and name.endswith(".json"):
            role = name[: -len(".json")]
            if role not in self.metadata:
                raise DownloadHTTPError(f"No {role} metadata", 404)
            return self.metadata[role]

        if method == "GET" and name.endswith(".key"):
            role = name[: -len(".key")]
            if role not in self.server_keys:
                raise DownloadHTTPError(f"No {role} key", 404)
            return json.dumps(self.server_keys[role].to_dict()).encode()

        if method == "DELETE" and name == "":
            if not self.metadata:
                raise DownloadHTTPError("No trust data", 404)
            self.metadata.clear()
            return b""

        if method == "POST" and name == "":
            assert headers is not None and data is not None
            self._receive(headers["Content-Type"], data)
            return b"{}"

        raise DownloadHTTPError(f"Unsupported {method} for '{name}'", 404)

    def _receive(self, content_type: str, body: bytes) -> None:
        """Apply a multipart upload, rejecting versions that do not increase."""
        message = BytesParser(policy=email.policy.HTTP).parsebytes(
            f"Content-Type: {content_type}\r\n\r\n".encode() + body
        )
        files = []
        for part in message.iter_parts():
            files.append((part.get_filename(), part.get_payload(decode=True)))

        for role, data in files:
            md = Metadata.from_bytes(data)
            if role in self.metadata:
                current = Metadata.from_bytes(self.metadata[role])
                if md.signed.version <= current.signed.version:
                    raise DownloadHTTPError(f"Stale {role} version", 400)

        self.uploads.append(Upload(content_type, body, files))
        for role, data in files:
            self.metadata[role] = data
            logger.debug("Stored %s", role)
