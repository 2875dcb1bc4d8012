# Copyright 2021-2022 python-tuf contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Key continuity between a signing identity and published root metadata

The resolver answers one question: can the root that is currently published
for a repository be kept for the identity that is about to publish?

* REUSE: the published root certificate is the identity's certificate (up to
  the serial number). All published key records stay as they are.
* CERT_UPDATE: the published root certificate certifies the identity's key
  but is otherwise different (e.g. a new expiry). Only the root certificate is
  replaced.
* FULL_RESET: there is no published root, or it belongs to another key. New
  key records are used for every role.
"""

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict, Optional

from tufnotary.api.exceptions import FormatError, UnsupportedKeyTypeError
from tufnotary.api.identity import SigningIdentity, same_tbs
from tufnotary.api.metadata import (
    _ROOT,
    _SNAPSHOT,
    _TARGETS,
    _TIMESTAMP,
    Key,
    Metadata,
    Root,
)
from tufnotary.client import NotaryClient

logger = logging.getLogger(__name__)


@unique
class Continuity(Enum):
    """Relation of a signing identity to the published root."""

    REUSE = "reuse"
    CERT_UPDATE = "cert-update"
    FULL_RESET = "full-reset"


@dataclass
class ResolvedKeys:
    """Key records to publish in the next root, with the decision behind them.

    Attributes:
        decision: How the key records were derived.
        root: Certificate-backed key record of the root role.
        targets: Key record of the targets role.
        snapshot: Server managed key record of the snapshot role.
        timestamp: Server managed key record of the timestamp role.
        prior_root: Currently published root metadata, if any.
        previous_root_keyid: Key-id of the replaced root certificate
            (CERT_UPDATE only).
    """

    decision: Continuity
    root: Key
    targets: Key
    snapshot: Key
    timestamp: Key
    prior_root: Optional[Metadata[Root]] = None
    previous_root_keyid: Optional[str] = None

    def role_keys(self) -> Dict[str, Key]:
        """Return the key record of every top-level role."""
        return {
            _ROOT: self.root,
            _TARGETS: self.targets,
            _SNAPSHOT: self.snapshot,
            _TIMESTAMP: self.timestamp,
        }


class KeyContinuityResolver:
    """Decide between REUSE, CERT_UPDATE and FULL_RESET for a repository.

    Args:
        notary: Client for the repository's trust data.
    """

    def __init__(self, notary: NotaryClient):
        self._notary = notary

    def resolve(self, identity: SigningIdentity) -> ResolvedKeys:
        """Compare ``identity`` with the published root and pick key records.

        A missing root is not an error. Every other failure to fetch or
        understand the published root is fatal.

        Raises:
            DownloadError: Root metadata or a server managed key cannot be
                fetched.
            DeserializationError: Published root metadata cannot be parsed.
            FormatError: Published root metadata is not usable.
            UnsupportedKeyTypeError: A published root key is not
                certificate-backed.
        """
        data = self._notary.get_metadata(_ROOT)
        if data is None:
            logger.info("No published root for %s", self._notary.gun)
            return self._full_reset(identity, None)

        prior: Metadata[Root] = Metadata.from_bytes(data)
        if not isinstance(prior.signed, Root):
            raise FormatError(
                f"Expected root metadata, got {prior.signed.type}"
            )
        root_keys = prior.signed.get_role_keys(_ROOT)
        if not root_keys:
            raise FormatError("Published root has no root keys")

        for key in root_keys:
            if not key.is_certificate:
                raise UnsupportedKeyTypeError(
                    f"Root key {key.keyid} has unsupported type {key.keytype}"
                )

        certificates = {}
        for key in root_keys:
            try:
                certificates[key.keyid] = key.certificate()
            except ValueError as e:
                raise FormatError(
                    f"Root key {key.keyid} has an invalid certificate"
                ) from e

        for key in root_keys:
            try:
                unchanged = same_tbs(
                    certificates[key.keyid], identity.certificate
                )
            except ValueError as e:
                raise FormatError(
                    f"Root key {key.keyid} has an invalid certificate"
                ) from e
            if unchanged:
                logger.debug("Root certificate %s is unchanged", key.keyid)
                return self._carry_over(Continuity.REUSE, prior, key)

        for key in root_keys:
            if identity.matches_key(key):
                logger.debug("Root certificate %s needs an update", key.keyid)
                resolved = self._carry_over(
                    Continuity.CERT_UPDATE, prior, identity.certificate_key()
                )
                resolved.previous_root_keyid = key.keyid
                return resolved

        logger.info("Published root for %s uses another key", self._notary.gun)
        return self._full_reset(identity, prior)

    @staticmethod
    def _carry_over(
        decision: Continuity, prior: Metadata[Root], root_key: Key
    ) -> ResolvedKeys:
        """Keep the published targets, snapshot and timestamp key records."""
        keys = {}
        for role in (_TARGETS, _SNAPSHOT, _TIMESTAMP):
            role_keys = prior.signed.get_role_keys(role)
            if len(role_keys) != 1:
                raise FormatError(
                    f"Expected a single {role} key, got {len(role_keys)}"
                )
            keys[role] = role_keys[0]

        return ResolvedKeys(
            decision,
            root_key,
            keys[_TARGETS],
            keys[_SNAPSHOT],
            keys[_TIMESTAMP],
            prior_root=prior,
        )

    def _full_reset(
        self, identity: SigningIdentity, prior: Optional[Metadata[Root]]
    ) -> ResolvedKeys:
        # snapshot and timestamp keys are generated by the server
        return ResolvedKeys(
            Continuity.FULL_RESET,
            identity.certificate_key(),
            identity.public_key_record(),
            self._notary.get_key(_SNAPSHOT),
            self._notary.get_key(_TIMESTAMP),
            prior_root=prior,
        )
