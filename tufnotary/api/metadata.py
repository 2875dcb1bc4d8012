# Copyright New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""The low-level Metadata API.

The low-level Metadata API in ``tufnotary.api.metadata`` module contains:

* Safe de/serialization of notary metadata to and from bytes.
* Access to and modification of signed metadata content.
* Signing metadata.

A ``Metadata`` object represents a single metadata file as served by a notary
server, and has a ``signed`` attribute that is an instance of one of the
two signed classes managed by this project (``Root`` and ``Targets``).
Snapshot and timestamp metadata are signed by the notary server and are not
modelled here. ``Metadata`` can be type constrained: e.g. the signed attribute
of ``Metadata[Root]`` is known to be ``Root``.

Signatures are kept as ``securesystemslib.signer.Signature`` objects: notary's
"method" field ends up in the signature's unrecognized fields.
"""

import logging
from typing import Any, Dict, Generic, Optional, Type, cast

from securesystemslib.signer import Signature

# Expose payload classes via ``tufnotary.api.metadata`` to maintain the API,
# even if they are unused in the local scope.
from tufnotary.api._payload import (  # noqa: F401
    _ROOT,
    _SNAPSHOT,
    _TARGETS,
    _TIMESTAMP,
    CERTIFICATE_KEY_TYPES,
    RAW_KEY_TYPES,
    SUPPORTED_HASH_ALGORITHMS,
    TOP_LEVEL_ROLE_NAMES,
    Key,
    Role,
    Root,
    Signed,
    T,
    TargetFile,
    Targets,
)
from tufnotary.api.exceptions import UnsignedMetadataError
from tufnotary.api.serialization import (
    MetadataDeserializer,
    MetadataSerializer,
    SignedSerializer,
)

logger = logging.getLogger(__name__)


class Metadata(Generic[T]):
    """A container for signed notary metadata.

    Provides methods to convert to and from dictionary and bytes, and to
    create metadata signatures.

    New Metadata instances can be created from scratch with::

        three_years = datetime.now(timezone.utc) + timedelta(days=3 * 365)
        targets = Metadata(Targets(expires=three_years))

    *All parameters named below are not just constructor arguments but also
    instance attributes.*

    Args:
        signed: Actual metadata payload, i.e. ``Root`` or ``Targets``.
        signatures: Ordered dictionary of keyids to ``Signature`` objects, each
            signing the canonical serialized representation of ``signed``.
            Default is an empty dictionary.
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API. These fields are NOT signed.
    """

    def __init__(
        self,
        signed: T,
        signatures: Optional[Dict[str, Signature]] = None,
        unrecognized_fields: Optional[Dict[str, Any]] = None,
    ):
        self.signed: T = signed
        self.signatures = signatures if signatures is not None else {}
        if unrecognized_fields is None:
            unrecognized_fields = {}

        self.unrecognized_fields = unrecognized_fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Metadata):
            return False

        return (
            self.signatures == other.signatures
            # Order of the signatures matters
            and list(self.signatures.items()) == list(other.signatures.items())
            and self.signed == other.signed
            and self.unrecognized_fields == other.unrecognized_fields
        )

    @property
    def signed_bytes(self) -> bytes:
        """Default canonical json byte representation of ``self.signed``."""

        # Use local scope import to avoid circular import errors
        from tufnotary.api.serialization.json import CanonicalJSONSerializer

        return CanonicalJSONSerializer().serialize(self.signed)

    @classmethod
    def from_dict(cls, metadata: Dict[str, Any]) -> "Metadata[T]":
        """Create ``Metadata`` object from its json/dict representation.

        Args:
            metadata: notary metadata in dict representation.

        Raises:
            ValueError, KeyError, TypeError: Invalid arguments.

        Side Effect:
            Destroys the metadata dict passed by reference.

        Returns:
            ``Metadata`` object.
        """

        # Dispatch to contained metadata class on metadata _type field.
        _type = metadata["signed"]["_type"].lower()

        if _type == _TARGETS:
            inner_cls: Type[Signed] = Targets
        elif _type == _ROOT:
            inner_cls = Root
        else:
            raise ValueError(f'unrecognized metadata type "{_type}"')

        # Make sure signatures are unique
        signatures: Dict[str, Signature] = {}
        for sig_dict in metadata.pop("signatures") or []:
            sig = Signature.from_dict(sig_dict)
            if sig.keyid in signatures:
                raise ValueError(
                    f"Multiple signatures found for keyid {sig.keyid}"
                )
            signatures[sig.keyid] = sig

        return cls(
            # Specific type T is not known at static type check time: use cast
            signed=cast(T, inner_cls.from_dict(metadata.pop("signed"))),
            signatures=signatures,
            # All fields left in the metadata dict are unrecognized.
            unrecognized_fields=metadata,
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        deserializer: Optional[MetadataDeserializer] = None,
    ) -> "Metadata[T]":
        """Load notary metadata from raw data.

        Args:
            data: Metadata content.
            deserializer: ``MetadataDeserializer`` implementation to use.
                Default is ``JSONDeserializer``.

        Raises:
            tufnotary.api.serialization.DeserializationError:
                The data cannot be deserialized.

        Returns:
            ``Metadata`` object.
        """

        if deserializer is None:
            # Use local scope import to avoid circular import errors
            from tufnotary.api.serialization.json import JSONDeserializer

            deserializer = JSONDeserializer()

        return deserializer.deserialize(data)

    def to_bytes(
        self, serializer: Optional[MetadataSerializer] = None
    ) -> bytes:
        """Return the serialized metadata file format as bytes.

        Args:
            serializer: ``MetadataSerializer`` instance that implements the
                desired serialization format. Default is a compact
                ``JSONSerializer``.

        Raises:
            tufnotary.api.serialization.SerializationError:
                The metadata object cannot be serialized.
        """

        if serializer is None:
            # Use local scope import to avoid circular import errors
            from tufnotary.api.serialization.json import JSONSerializer

            serializer = JSONSerializer(compact=True)

        return serializer.serialize(self)

    def to_dict(self) -> Dict[str, Any]:
        """Return the dict representation of self."""

        signatures = [sig.to_dict() for sig in self.signatures.values()]

        return {
            "signatures": signatures,
            "signed": self.signed.to_dict(),
            **self.unrecognized_fields,
        }

    # Signatures.
    def sign(
        self,
        signer: Any,  # noqa: ANN401
        append: bool = False,
        signed_serializer: Optional[SignedSerializer] = None,
    ) -> Signature:
        """Create signature over ``signed`` and assigns it to ``signatures``.

        Args:
            signer: An object with a ``sign(payload) -> Signature`` method,
                usually a ``tufnotary.api.signer.NotarySigner``.
            append: ``True`` if the signature should be appended to
                the list of signatures or replace any existing signatures. The
                default behavior is to replace signatures.
            signed_serializer: ``SignedSerializer`` that implements the desired
                serialization format. Default is ``CanonicalJSONSerializer``.

        Raises:
            tufnotary.api.serialization.SerializationError:
                ``signed`` cannot be serialized.
            UnsignedMetadataError: Signing errors.

        Returns:
            ``securesystemslib.signer.Signature`` object that was added into
            signatures.
        """

        if signed_serializer is None:
            bytes_data = self.signed_bytes
        else:
            bytes_data = signed_serializer.serialize(self.signed)

        try:
            signature = signer.sign(bytes_data)
        except Exception as e:
            raise UnsignedMetadataError(f"Failed to sign: {e}") from e

        if not append:
            self.signatures.clear()

        self.signatures[signature.keyid] = signature

        return signature
