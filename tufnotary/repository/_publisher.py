# Copyright 2021-2022 python-tuf contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Publishing of root and targets metadata to a notary server"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from tufnotary.api.exceptions import FormatError, UnsignedMetadataError
from tufnotary.api.identity import SigningIdentity
from tufnotary.api.metadata import (
    _ROOT,
    _TARGETS,
    Key,
    Metadata,
    Root,
    TargetFile,
    Targets,
)
from tufnotary.api.signer import NotarySigner
from tufnotary.client import NotaryClient
from tufnotary.config import PublisherConfig
from tufnotary.repository._builder import (
    build_root,
    build_targets,
    is_unchanged,
    merge_targets,
)
from tufnotary.repository._continuity import (
    Continuity,
    KeyContinuityResolver,
    ResolvedKeys,
)

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Outcome of ``Publisher.publish()``.

    Attributes:
        decision: Continuity decision for the published root.
        published: False if nothing had to be published.
        root_version: Version of the root that is now published.
        targets_version: Version of the targets that are now published.
    """

    decision: Continuity
    published: bool
    root_version: Optional[int]
    targets_version: Optional[int]


class Publisher:
    """Publish targets for one repository, updating its root as needed.

    Every run starts from the trust data currently on the server: nothing is
    cached between runs. Publishing the same targets twice with the same
    identity is a no-op the second time.

    Args:
        notary: Client for the repository's trust data.
        signer: Signer holding the private key of the signing identity. The
            key-id it was created with does not matter.
        config: Optional ``PublisherConfig`` instance.
    """

    def __init__(
        self,
        notary: NotaryClient,
        signer: NotarySigner,
        config: Optional[PublisherConfig] = None,
    ):
        self._notary = notary
        self._signer = signer
        self.config = config or PublisherConfig()

    def publish(
        self,
        identity: SigningIdentity,
        target_set: Mapping[str, TargetFile],
        add_only: bool = False,
    ) -> PublishResult:
        """Publish ``target_set`` signed by ``identity``.

        Args:
            identity: Signing identity of ``signer``.
            target_set: Targets to publish.
            add_only: Keep published targets missing from ``target_set``.

        Raises:
            DownloadError: Communication with the server failed.
            RepositoryError: Published metadata is unusable, or signing
                failed.
        """
        resolved = KeyContinuityResolver(self._notary).resolve(identity)
        logger.info(
            "Key continuity for %s: %s",
            self._notary.gun,
            resolved.decision.name,
        )

        previous = self._fetch_targets()
        targets = merge_targets(target_set, previous, add_only)

        if is_unchanged(resolved.decision, targets, previous):
            assert resolved.prior_root is not None
            assert previous is not None
            logger.info("Trust data for %s is up to date", self._notary.gun)
            return PublishResult(
                resolved.decision,
                False,
                resolved.prior_root.signed.version,
                previous.version,
            )

        root_md = build_root(resolved, identity.not_after)
        expires = datetime.now(timezone.utc) + self.config.targets_expiry
        targets_md = build_targets(targets, previous, expires)

        # Fail before deleting anything if signing is not possible
        if not _holds_key(identity, resolved.targets):
            raise UnsignedMetadataError(
                f"Targets key {resolved.targets.keyid} is not the signing key"
            )

        if resolved.decision == Continuity.FULL_RESET:
            self._notary.delete_trust_data()

        self._sign_root(root_md, resolved)
        targets_md.sign(self._signer.with_keyid(resolved.targets.keyid))

        self._notary.publish(
            [
                (_ROOT, root_md.to_bytes()),
                (_TARGETS, targets_md.to_bytes()),
            ]
        )
        return PublishResult(
            resolved.decision,
            True,
            root_md.signed.version,
            targets_md.signed.version,
        )

    def _fetch_targets(self) -> Optional[Targets]:
        data = self._notary.get_metadata(_TARGETS)
        if data is None:
            return None

        md: Metadata[Targets] = Metadata.from_bytes(data)
        if not isinstance(md.signed, Targets):
            raise FormatError(
                f"Expected targets metadata, got {md.signed.type}"
            )
        logger.debug("Published targets version is %d", md.signed.version)
        return md.signed

    def _sign_root(
        self, root_md: Metadata[Root], resolved: ResolvedKeys
    ) -> None:
        root_md.sign(self._signer.with_keyid(resolved.root.keyid))

        # Clients that trust the previous root certificate must be able to
        # verify the new root
        if resolved.previous_root_keyid is not None:
            root_md.sign(
                self._signer.with_keyid(resolved.previous_root_keyid),
                append=True,
            )


def _holds_key(identity: SigningIdentity, key: Key) -> bool:
    if key.is_certificate:
        return identity.matches_key(key)
    return (
        key.keytype == identity.algorithm and key.public_bytes == identity.spki
    )
