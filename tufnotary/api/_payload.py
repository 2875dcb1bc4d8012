# Copyright the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0


"""Helper classes for low-level Metadata API."""

import abc
import base64
import logging
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Tuple, TypeVar

import iso8601
from cryptography import x509
from securesystemslib import exceptions as sslib_exceptions
from securesystemslib import hash as sslib_hash
from securesystemslib.formats import encode_canonical

_ROOT = "root"
_SNAPSHOT = "snapshot"
_TARGETS = "targets"
_TIMESTAMP = "timestamp"

TOP_LEVEL_ROLE_NAMES = {_ROOT, _TIMESTAMP, _SNAPSHOT, _TARGETS}

# Key types whose public value is a PEM certificate wrapping the public key
CERTIFICATE_KEY_TYPES = {"ecdsa-x509", "rsa-x509"}
RAW_KEY_TYPES = {"ecdsa", "rsa", "ed25519"}

SUPPORTED_HASH_ALGORITHMS = ["sha256", "sha512"]

logger = logging.getLogger(__name__)

# T is a Generic type constraint for container payloads
T = TypeVar("T", "Root", "Targets")


class Signed(metaclass=abc.ABCMeta):
    """A base class for the signed part of notary metadata.

    Objects with base class Signed are usually included in a ``Metadata`` object
    on the signed attribute. This class provides attributes and methods that
    are common for the root and targets roles.

    *All parameters named below are not just constructor arguments but also
    instance attributes.*

    Args:
        version: Metadata version number. If None, then 1 is assigned.
        expires: Metadata expiry date in UTC timezone. If None, then current
            date and time is assigned.
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API

    Raises:
        ValueError: Invalid arguments.
    """

    # type is required for static reference without changing the API
    type: ClassVar[str] = "signed"

    # notary writes the type capitalized ("Root", "Targets")
    @property
    def _type(self) -> str:
        return self.type.capitalize()

    @property
    def expires(self) -> datetime:
        """Get the metadata expiry date."""
        return self._expires

    @expires.setter
    def expires(self, value: datetime) -> None:
        self._expires = value.replace(microsecond=0)
        if self._expires.tzinfo is None:
            # Naive datetime: just make it UTC
            self._expires = self._expires.replace(tzinfo=timezone.utc)
        elif self._expires.tzinfo != timezone.utc:
            self._expires = self._expires.astimezone(timezone.utc)

    def __init__(
        self,
        version: Optional[int],
        expires: Optional[datetime],
        unrecognized_fields: Optional[Dict[str, Any]],
    ):
        self.expires = expires or datetime.now(timezone.utc)

        if version is None:
            version = 1
        elif version <= 0:
            raise ValueError(f"version must be > 0, got {version}")
        self.version = version

        if unrecognized_fields is None:
            unrecognized_fields = {}

        self.unrecognized_fields = unrecognized_fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signed):
            return False

        return (
            self.type == other.type
            and self.version == other.version
            and self.expires == other.expires
            and self.unrecognized_fields == other.unrecognized_fields
        )

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize and return a dict representation of self."""
        raise NotImplementedError

    @classmethod
    @abc.abstractmethod
    def from_dict(cls, signed_dict: Dict[str, Any]) -> "Signed":
        """Deserialization helper, creates object from json/dict
        representation.
        """
        raise NotImplementedError

    @classmethod
    def _common_fields_from_dict(
        cls, signed_dict: Dict[str, Any]
    ) -> Tuple[int, datetime]:
        """Return common fields of ``Signed`` instances from the passed dict
        representation, and returns an ordered list to be passed as leading
        positional arguments to a subclass constructor.
        """
        _type = signed_dict.pop("_type")
        if _type.lower() != cls.type:
            raise ValueError(f"Expected type {cls.type}, got {_type}")

        version = signed_dict.pop("version")
        # notary server writes RFC 3339 timestamps with nanoseconds and
        # arbitrary offsets: let iso8601 deal with those
        expires = iso8601.parse_date(signed_dict.pop("expires")).astimezone(
            timezone.utc
        )

        return version, expires

    def _common_fields_to_dict(self) -> Dict[str, Any]:
        """Return a dict representation of common fields of
        ``Signed`` instances.
        """
        return {
            "_type": self._type,
            "version": self.version,
            "expires": self.expires.strftime("%Y-%m-%dT%H:%M:%SZ"),
            **self.unrecognized_fields,
        }


class Key:
    """A public key record as stored in notary root metadata.

    The key value is kept exactly as read so that a record copied from a
    previously published root keeps its key-id.

    *All parameters named below are not just constructor arguments but also
    instance attributes.*

    Args:
        keyid: Key identifier, the hex SHA-256 of the canonical key record.
        keytype: Key type, e.g. "ecdsa" or "ecdsa-x509".
        keyval: Dictionary with the base64 "public" value (and "private",
            which is always null in published metadata).
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API.

    Raises:
        ValueError, TypeError: Invalid arguments.
    """

    def __init__(
        self,
        keyid: str,
        keytype: str,
        keyval: Dict[str, Any],
        unrecognized_fields: Optional[Dict[str, Any]] = None,
    ):
        if not isinstance(keyval.get("public"), str):
            raise TypeError("keyval must contain a base64 'public' string")
        self.keyid = keyid
        self.keytype = keytype
        self.keyval = keyval
        if unrecognized_fields is None:
            unrecognized_fields = {}

        self.unrecognized_fields = unrecognized_fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return False

        return (
            self.keyid == other.keyid
            and self.keytype == other.keytype
            and self.keyval == other.keyval
            and self.unrecognized_fields == other.unrecognized_fields
        )

    def __repr__(self) -> str:
        return f"Key({self.keytype}, {self.keyid[:7]})"

    @classmethod
    def from_dict(cls, keyid: str, key_dict: Dict[str, Any]) -> "Key":
        """Create ``Key`` object from its json/dict representation.

        Raises:
            KeyError, TypeError: Invalid arguments.
        """
        keytype = key_dict.pop("keytype")
        keyval = key_dict.pop("keyval")
        # All fields left in the key_dict are unrecognized.
        return cls(keyid, keytype, keyval, key_dict)

    @classmethod
    def from_public_bytes(cls, keytype: str, public: bytes) -> "Key":
        """Create a new key record and compute its key-id.

        Args:
            keytype: One of the raw or certificate-backed key types.
            public: DER encoded public key, or PEM certificate bytes for the
                certificate-backed types.
        """
        if keytype not in RAW_KEY_TYPES | CERTIFICATE_KEY_TYPES:
            raise ValueError(f"Unknown key type {keytype}")
        keyval = {
            "private": None,
            "public": base64.b64encode(public).decode("ascii"),
        }
        key = cls("", keytype, keyval)
        key.keyid = key.compute_keyid()
        return key

    def to_dict(self) -> Dict[str, Any]:
        """Return the dict representation of self."""
        return {
            "keytype": self.keytype,
            "keyval": self.keyval,
            **self.unrecognized_fields,
        }

    def compute_keyid(self) -> str:
        """Return the hex SHA-256 of the canonical encoding of this record."""
        data = encode_canonical(self.to_dict()).encode("utf-8")
        digest_object = sslib_hash.digest("sha256")
        digest_object.update(data)
        return digest_object.hexdigest()

    @property
    def public_bytes(self) -> bytes:
        """Decoded public value (DER key or PEM certificate)."""
        return base64.b64decode(self.keyval["public"])

    @property
    def is_certificate(self) -> bool:
        return self.keytype in CERTIFICATE_KEY_TYPES

    def certificate(self) -> x509.Certificate:
        """Load the certificate of a certificate-backed key.

        Raises:
            ValueError: The key is not certificate-backed or the certificate
                cannot be parsed.
        """
        if not self.is_certificate:
            raise ValueError(
                f"{self.keytype} key {self.keyid} has no certificate"
            )

        return x509.load_pem_x509_certificate(self.public_bytes)


class Role:
    """Container that defines which keys are required to sign roles metadata.

    Role defines how many keys are required to successfully sign the roles
    metadata, and which keys are accepted.

    *All parameters named below are not just constructor arguments but also
    instance attributes.*

    Args:
        keyids: Roles signing key identifiers.
        threshold: Number of keys required to sign this role's metadata.
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API

    Raises:
        ValueError: Invalid arguments.
    """

    def __init__(
        self,
        keyids: List[str],
        threshold: int,
        unrecognized_fields: Optional[Dict[str, Any]] = None,
    ):
        if len(set(keyids)) != len(keyids):
            raise ValueError(f"Nonunique keyids: {keyids}")
        if threshold < 1:
            raise ValueError("threshold should be at least 1!")
        self.keyids = keyids
        self.threshold = threshold
        if unrecognized_fields is None:
            unrecognized_fields = {}

        self.unrecognized_fields = unrecognized_fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Role):
            return False

        return (
            self.keyids == other.keyids
            and self.threshold == other.threshold
            and self.unrecognized_fields == other.unrecognized_fields
        )

    @classmethod
    def from_dict(cls, role_dict: Dict[str, Any]) -> "Role":
        """Create ``Role`` object from its json/dict representation.

        Raises:
            ValueError, KeyError: Invalid arguments.
        """
        keyids = role_dict.pop("keyids")
        threshold = role_dict.pop("threshold")
        # All fields left in the role_dict are unrecognized.
        return cls(keyids, threshold, role_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the dictionary representation of self."""
        return {
            "keyids": self.keyids,
            "threshold": self.threshold,
            **self.unrecognized_fields,
        }


class Root(Signed):
    """A container for the signed part of root metadata.

    Parameters listed below are also instance attributes.

    Args:
        version: Metadata version number. Default is 1.
        expires: Metadata expiry date. Default is current date and time.
        keys: Dictionary of keyids to Keys. Defines the keys used in ``roles``.
            Default is empty dictionary.
        roles: Dictionary of role names to Roles. Defines which keys are
            required to sign the metadata for a specific role. Default is
            a dictionary of top level roles without keys and threshold of 1.
        consistent_snapshot: ``True`` if repository supports consistent
            snapshots. Notary repositories do not, default is False.
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API

    Raises:
        ValueError: Invalid arguments.
    """

    type = _ROOT

    def __init__(
        self,
        version: Optional[int] = None,
        expires: Optional[datetime] = None,
        keys: Optional[Dict[str, Key]] = None,
        roles: Optional[Dict[str, Role]] = None,
        consistent_snapshot: Optional[bool] = False,
        unrecognized_fields: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(version, expires, unrecognized_fields)
        self.consistent_snapshot = consistent_snapshot
        self.keys = keys if keys is not None else {}

        if roles is None:
            roles = {r: Role([], 1) for r in TOP_LEVEL_ROLE_NAMES}
        elif set(roles) != TOP_LEVEL_ROLE_NAMES:
            raise ValueError("Role names must be the top-level metadata roles")

        for role_name, role in roles.items():
            missing = [k for k in role.keyids if k not in self.keys]
            if missing:
                raise ValueError(
                    f"Role {role_name} uses unknown keys {missing}"
                )
        self.roles = roles

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Root):
            return False

        return (
            super().__eq__(other)
            and self.keys == other.keys
            and self.roles == other.roles
            and self.consistent_snapshot == other.consistent_snapshot
        )

    @classmethod
    def from_dict(cls, signed_dict: Dict[str, Any]) -> "Root":
        """Create ``Root`` object from its json/dict representation.

        Raises:
            ValueError, KeyError, TypeError: Invalid arguments.
        """
        common_args = cls._common_fields_from_dict(signed_dict)
        consistent_snapshot = signed_dict.pop("consistent_snapshot", None)
        keys = signed_dict.pop("keys")
        roles = signed_dict.pop("roles")

        for keyid, key_dict in keys.items():
            keys[keyid] = Key.from_dict(keyid, key_dict)
        for role_name, role_dict in roles.items():
            roles[role_name] = Role.from_dict(role_dict)

        # All fields left in the signed_dict are unrecognized.
        return cls(*common_args, keys, roles, consistent_snapshot, signed_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the dict representation of self."""
        root_dict = self._common_fields_to_dict()
        keys = {keyid: key.to_dict() for (keyid, key) in self.keys.items()}
        roles = {}
        for role_name, role in self.roles.items():
            roles[role_name] = role.to_dict()
        if self.consistent_snapshot is not None:
            root_dict["consistent_snapshot"] = self.consistent_snapshot

        root_dict.update(
            {
                "keys": keys,
                "roles": roles,
            }
        )
        return root_dict

    def get_key(self, keyid: str) -> Key:
        if keyid not in self.keys:
            raise ValueError(f"Key {keyid} not found")

        return self.keys[keyid]

    def get_role_keys(self, role: str) -> List[Key]:
        """Return the keys of a top-level role in keyid order.

        Raises ValueError if role is not a top-level role.
        """
        if role not in self.roles:
            raise ValueError(f"Role {role} not found")

        return [self.get_key(keyid) for keyid in self.roles[role].keyids]


class TargetFile:
    """A container with information about a particular target file.

    Hashes are base64 encoded digests, as notary stores them.

    *All parameters named below are not just constructor arguments but also
    instance attributes.*

    Args:
        length: Length in bytes.
        hashes: Dictionary of hash algorithm names to base64 hashes.
        path: URL path to a target file, relative to a base targets URL.
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API

    Raises:
        ValueError, TypeError: Invalid arguments.
    """

    def __init__(
        self,
        length: int,
        hashes: Dict[str, str],
        path: str,
        unrecognized_fields: Optional[Dict[str, Any]] = None,
    ):
        self._validate_length(length)
        self._validate_hashes(hashes)

        self.length = length
        self.hashes = hashes
        self.path = path
        if unrecognized_fields is None:
            unrecognized_fields = {}

        self.unrecognized_fields = unrecognized_fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TargetFile):
            return False

        return (
            self.length == other.length
            and self.hashes == other.hashes
            and self.path == other.path
            and self.unrecognized_fields == other.unrecognized_fields
        )

    def __repr__(self) -> str:
        return f"TargetFile({self.path!r}, {self.length}, {self.hashes})"

    @staticmethod
    def _validate_hashes(hashes: Dict[str, str]) -> None:
        if not hashes:
            raise ValueError("Hashes must be a non empty dictionary")
        for key, value in hashes.items():
            if not (isinstance(key, str) and isinstance(value, str)):
                raise TypeError("Hashes items must be strings")

    @staticmethod
    def _validate_length(length: int) -> None:
        if length < 0:
            raise ValueError(f"Length must be >= 0, got {length}")

    @classmethod
    def from_dict(cls, target_dict: Dict[str, Any], path: str) -> "TargetFile":
        """Create ``TargetFile`` object from its json/dict representation.

        Raises:
            ValueError, KeyError, TypeError: Invalid arguments.
        """
        length = target_dict.pop("length")
        hashes = target_dict.pop("hashes")

        # All fields left in the target_dict are unrecognized.
        return cls(length, hashes, path, target_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-serializable dictionary representation of self."""
        return {
            "length": self.length,
            "hashes": self.hashes,
            **self.unrecognized_fields,
        }

    @classmethod
    def from_data(
        cls,
        target_file_path: str,
        data: bytes,
        hash_algorithms: Optional[List[str]] = None,
    ) -> "TargetFile":
        """Create ``TargetFile`` object from bytes.

        Args:
            target_file_path: URL path to a target file, relative to a base
                targets URL.
            data: Target file content.
            hash_algorithms: Hash algorithms to create the hashes with. Default
                is sha256.

        Raises:
            ValueError: The hash algorithms list contains an unsupported
                algorithm.
        """
        if hash_algorithms is None:
            hash_algorithms = ["sha256"]

        hashes = {}
        for algorithm in hash_algorithms:
            try:
                digest_object = sslib_hash.digest(algorithm)
            except (
                sslib_exceptions.UnsupportedAlgorithmError,
                sslib_exceptions.FormatError,
            ) as e:
                raise ValueError(f"Unsupported algorithm '{algorithm}'") from e

            digest_object.update(data)
            hashes[algorithm] = base64.b64encode(digest_object.digest()).decode(
                "ascii"
            )

        return cls(len(data), hashes, target_file_path)

    @classmethod
    def from_digest(
        cls, target_file_path: str, algorithm: str, hexdigest: str, length: int
    ) -> "TargetFile":
        """Create ``TargetFile`` object from a precomputed hex digest.

        Raises:
            ValueError: Unsupported algorithm, or hexdigest is not valid hex
                of the algorithm's digest size.
        """
        if algorithm not in SUPPORTED_HASH_ALGORITHMS:
            raise ValueError(f"Unsupported algorithm '{algorithm}'")

        digest = bytes.fromhex(hexdigest)
        if len(digest) != sslib_hash.digest(algorithm).digest_size:
            raise ValueError(
                f"Expected a {algorithm} digest, got {len(digest)} bytes"
            )
        hashes = {algorithm: base64.b64encode(digest).decode("ascii")}
        return cls(length, hashes, target_file_path)

    def get_hexdigest(self, algorithm: str = "sha256") -> str:
        """Return the hex encoded digest for ``algorithm``."""
        return base64.b64decode(self.hashes[algorithm]).hex()


class Targets(Signed):
    """A container for the signed part of targets metadata.

    Delegations are not supported: the delegations field is always written
    as an empty delegation set.

    *All parameters named below are not just constructor arguments but also
    instance attributes.*

    Args:
        version: Metadata version number. Default is 1.
        expires: Metadata expiry date. Default is current date and time.
        targets: Dictionary of target filenames to TargetFiles. Default is an
            empty dictionary.
        unrecognized_fields: Dictionary of all attributes that are not managed
            by the Metadata API

    Raises:
        ValueError: Invalid arguments.
    """

    type = _TARGETS

    def __init__(
        self,
        version: Optional[int] = None,
        expires: Optional[datetime] = None,
        targets: Optional[Dict[str, TargetFile]] = None,
        unrecognized_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(version, expires, unrecognized_fields)
        self.targets = targets if targets is not None else {}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Targets):
            return False

        return super().__eq__(other) and self.targets == other.targets

    @classmethod
    def from_dict(cls, signed_dict: Dict[str, Any]) -> "Targets":
        """Create ``Targets`` object from its json/dict representation.

        Raises:
            ValueError, KeyError, TypeError: Invalid arguments.
        """
        common_args = cls._common_fields_from_dict(signed_dict)
        targets = signed_dict.pop(_TARGETS)
        delegations = signed_dict.pop("delegations", None)
        if delegations and (
            delegations.get("keys") or delegations.get("roles")
        ):
            logger.warning("Ignoring delegations in targets metadata")

        res_targets = {}
        for target_path, target_info in targets.items():
            res_targets[target_path] = TargetFile.from_dict(
                target_info, target_path
            )
        # All fields left in the targets_dict are unrecognized.
        return cls(*common_args, res_targets, signed_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the dict representation of self."""
        targets_dict = self._common_fields_to_dict()
        targets = {}
        for target_path, target_file_obj in self.targets.items():
            targets[target_path] = target_file_obj.to_dict()
        targets_dict[_TARGETS] = targets
        targets_dict["delegations"] = {"keys": {}, "roles": []}
        return targets_dict
